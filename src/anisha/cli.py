"""Text-mode operator surface for ANISHA.

Usage:
    anisha [--config config.yaml] [--log-level INFO]

Commands inside the REPL:
    /mic on|off  /camera on|off  /memory session|consent|none
    /lang en|hi|as|auto  /reset  /quit
Anything else is submitted as user text.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, Optional

from .config.settings import AnishaConfig, load_config
from .core.errors import CapabilityUnavailable, ConfigError
from .core.language import Language, display_name, parse_language
from .core.memory import ConversationMemory
from .core.orchestrator import SessionOrchestrator, TurnPhase
from .logging.json_logger import create_logger_from_env
from .stt.base import create_stt_backend
from .tts.base import create_tts_backend
from .vision.presence import PresenceTracker
from .voice.llm import RemoteReplyClient, ResponseGenerator
from .voice.speech_io import SpeechIO

logger = logging.getLogger(__name__)

HELP = "/mic on|off  /camera on|off  /memory session|consent|none  /lang en|hi|as|auto  /reset  /quit"


def _stt_kwargs(config: AnishaConfig) -> Dict[str, Any]:
    if config.stt_backend == "vosk" and config.vosk_model_dir:
        return {"model_dirs": {"default": config.vosk_model_dir}}
    return {}


def _tts_kwargs(config: AnishaConfig) -> Dict[str, Any]:
    if config.tts_backend == "piper":
        return {"voices": config.piper_voices}
    return {}


def build_session(config: AnishaConfig, event_logger=None) -> SessionOrchestrator:
    """Wire backends, generator and memory into an orchestrator.

    Unavailable capabilities are logged and left out; the session still runs.
    """
    try:
        stt = create_stt_backend(config.stt_backend, **_stt_kwargs(config))
    except CapabilityUnavailable as e:
        logger.warning(f"[cli] {e}")
        stt = None
    try:
        tts = create_tts_backend(config.tts_backend, **_tts_kwargs(config))
    except CapabilityUnavailable as e:
        logger.warning(f"[cli] {e}")
        tts = None

    presence_source = None
    try:
        from .vision.camera_source import CameraPresenceSource

        presence_source = CameraPresenceSource(camera_index=config.camera_index)
    except CapabilityUnavailable as e:
        logger.info(f"[cli] {e}")

    client = RemoteReplyClient(
        api_key=config.api_key,
        endpoint=config.llm_endpoint,
        model=config.llm_model,
        timeout=config.llm_timeout,
    )
    return SessionOrchestrator(
        SpeechIO(stt=stt, tts=tts),
        ResponseGenerator(client=client),
        memory=ConversationMemory(config.max_history, config.memory_mode),
        presence=PresenceTracker(config.presence_timeout),
        presence_source=presence_source,
        event_logger=event_logger,
        default_language=config.default_language,
    )


def print_signal(name: str, payload: Dict[str, Any]) -> None:
    if name == "reply":
        reply = payload["reply"]
        tag = " (offline)" if reply.fallback else ""
        print(f"ANISHA [{reply.emotion.value}]{tag}: {reply.text}")
    elif name == "caption":
        print(f"  ... {payload['text']}")
    elif name == "status":
        print(f"[{payload['kind']}] {payload['message']}")
    elif name == "language_changed":
        print(f"[language] {display_name(payload['language'])}")
    elif name == "memory_mode":
        print(f"[memory] {payload['mode'].value}")
    elif name == "attention":
        print(f"[presence] {'present' if payload['present'] else 'absent'}")


class Repl:
    """Line-oriented command loop over one orchestrator."""

    def __init__(self, session: SessionOrchestrator):
        self.session = session
        self.language: Optional[Language] = None
        self.running = True

    async def handle(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        if not line.startswith("/"):
            self.session.submit_text(line, self.language)
            return

        cmd, _, arg = line[1:].partition(" ")
        arg = arg.strip().lower()
        if cmd == "quit":
            self.running = False
        elif cmd == "mic" and arg in ("on", "off"):
            await self.session.toggle_microphone(arg == "on")
        elif cmd == "camera" and arg in ("on", "off"):
            await self.session.toggle_camera(arg == "on")
        elif cmd == "memory":
            try:
                self.session.set_memory_mode(arg)
            except ValueError as e:
                print(f"[error] {e}")
        elif cmd == "lang":
            self.language = None if arg in ("", "auto") else parse_language(arg)
            print(f"[language] {'auto' if self.language is None else display_name(self.language)}")
        elif cmd == "reset":
            self.session.reset()
        else:
            print(HELP)

    async def run(self) -> None:
        await self.session.start()
        print(f"ANISHA text session. {HELP}")
        try:
            while self.running:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                await self.handle(line)
                # let a short reply cycle settle before prompting again
                for _ in range(100):
                    if self.session.phase in (TurnPhase.IDLE, TurnPhase.LISTENING):
                        break
                    await asyncio.sleep(0.05)
        finally:
            await self.session.shutdown()


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(prog="anisha", description="ANISHA conversational session")
    parser.add_argument("--config", help="YAML config file (default: $ANISHA_CONFIG)")
    parser.add_argument("--log-level", default="WARNING", help="Python log level")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"anisha: {e}", file=sys.stderr)
        return 2

    event_logger = create_logger_from_env()
    session = build_session(config, event_logger=event_logger)
    session.add_listener(print_signal)
    try:
        asyncio.run(Repl(session).run())
    except KeyboardInterrupt:
        pass
    finally:
        if event_logger is not None:
            event_logger.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
