"""Session orchestrator for ANISHA.

Owns the session state and the conversation memory, and is the only place
where events from speech recognition, presence detection, response generation
and playback are reduced into state transitions.

Turn-taking phases:

    Idle/Listening --final transcript--> Thinking --reply ready--> Speaking
    Speaking --playback complete--> Listening (mic on) | Idle (mic off)
    Speaking --playback complete, pending input--> Thinking
    any --reset--> Idle

Every handler runs to completion on the event loop without awaiting, so no
handler ever observes a half-updated SessionState. Async work (generation,
playback) is tagged with the session epoch at launch; a reset advances the
epoch and any completion carrying an older epoch is discarded.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import CapabilityUnavailable, StaleResult
from .language import DEFAULT_LANGUAGE, Language, detect_language, locale_code, parse_language
from .memory import (
    ConsentResolver,
    ConversationMemory,
    MemoryMode,
    auto_approve_consent,
    contains_personal_detail,
)
from .turn import JsonLogger, Reply, SessionEvent, Speaker, Turn, new_trace_id
from ..persona.anisha import GREETING
from ..vision.presence import (
    PresenceChange,
    PresenceEvent,
    PresenceObservation,
    PresenceSource,
    PresenceTracker,
    gaze_target,
)
from ..voice.llm import ResponseGenerator
from ..voice.speech_io import PlaybackOutcome, SpeechIO

logger = logging.getLogger(__name__)

SignalListener = Callable[[str, Dict[str, Any]], None]


class TurnPhase(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    THINKING = "thinking"
    SPEAKING = "speaking"


@dataclass
class Attention:
    """Externally observable attention signal derived from presence."""

    present: bool = False
    gaze: tuple = (0.0, 0.0)


@dataclass
class SessionState:
    """Mutable session record. Only SessionOrchestrator writes to it."""

    turn_phase: TurnPhase = TurnPhase.IDLE
    mic_enabled: bool = False
    camera_enabled: bool = False
    current_language: Language = DEFAULT_LANGUAGE
    last_presence_time: Optional[float] = None
    attention: Attention = field(default_factory=Attention)


@dataclass(frozen=True)
class PendingInput:
    text: str
    language: Optional[Language] = None


class SessionOrchestrator:
    """Turn-taking state machine tying speech, presence, memory and generation together."""

    def __init__(
        self,
        speech: SpeechIO,
        generator: ResponseGenerator,
        *,
        memory: Optional[ConversationMemory] = None,
        presence: Optional[PresenceTracker] = None,
        presence_source: Optional[PresenceSource] = None,
        consent_resolver: ConsentResolver = auto_approve_consent,
        event_logger: Optional[JsonLogger] = None,
        presence_poll_s: float = 0.1,
        default_language: Language = DEFAULT_LANGUAGE,
    ):
        """Initialize session orchestrator.

        Args:
            speech: Speech I/O coordinator (recognizer and synthesizer may be absent)
            generator: Reply generator; never raises
            memory: Conversation memory, a fresh session-mode memory if None
            presence: Presence tracker, 2 s absence window if None
            presence_source: External detector started by the camera toggle
            consent_resolver: Async yes/no decision for storing personal details
            event_logger: Optional structured event sink (JsonFileLogger)
            presence_poll_s: Cadence of the absence watchdog
            default_language: Starting language, restored on reset
        """
        self.speech = speech
        self.generator = generator
        self.memory = memory or ConversationMemory()
        self.presence = presence or PresenceTracker()
        self.presence_source = presence_source
        self.consent_resolver = consent_resolver
        self.event_logger = event_logger
        self.presence_poll_s = presence_poll_s
        self.default_language = default_language

        self.state = SessionState(current_language=default_language)
        self._epoch = 0
        self._pending: Optional[PendingInput] = None
        self._generation: Optional[asyncio.Task] = None
        self._playback: Optional[asyncio.Task] = None
        self._watchdog: Optional[asyncio.Task] = None
        self._trace_id: Optional[str] = None
        self._listeners: List[SignalListener] = []

        self.speech.on_interim = self._on_interim
        self.speech.on_final = self.on_final_transcript

        self.stats = {
            "cycles": 0,
            "fallbacks": 0,
            "pending_overwrites": 0,
            "stale_results": 0,
            "resets": 0,
            "consent_denied": 0,
        }

    # ----------------- properties ---------------------
    @property
    def phase(self) -> TurnPhase:
        return self.state.turn_phase

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def pending_text(self) -> Optional[str]:
        return self._pending.text if self._pending else None

    # ----------------- signals ------------------------
    def add_listener(self, listener: SignalListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SignalListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        payload = payload or {}
        for listener in list(self._listeners):
            try:
                listener(name, payload)
            except Exception as e:
                logger.error(f"[orchestrator] signal listener failed on '{name}': {e}", exc_info=True)

    def _log_event(self, event: SessionEvent, **payload: Any) -> None:
        if self.event_logger is None:
            return
        if self._trace_id is not None:
            payload.setdefault("trace_id", self._trace_id)
        payload.setdefault("epoch", self._epoch)
        self.event_logger.log_event(event, payload)

    def _status(self, kind: str, message: str, **extra: Any) -> None:
        self._emit("status", {"kind": kind, "message": message, **extra})

    def _set_phase(self, phase: TurnPhase) -> None:
        old = self.state.turn_phase
        if old is phase:
            return
        self.state.turn_phase = phase
        logger.debug(f"[orchestrator] {old.value} -> {phase.value}")
        self._log_event(SessionEvent.PHASE_CHANGED, from_phase=old.value, to_phase=phase.value)
        self._emit("phase_changed", {"from": old, "to": phase})

    def _resting_phase(self) -> TurnPhase:
        return TurnPhase.LISTENING if self.state.mic_enabled else TurnPhase.IDLE

    def _discard_stale(self, kind: str, epoch: int) -> None:
        self.stats["stale_results"] += 1
        logger.debug(f"[orchestrator] {StaleResult(kind, epoch, self._epoch)}")
        self._log_event(SessionEvent.STALE_RESULT, kind=kind, result_epoch=epoch)

    # ----------------- user input ---------------------
    def _on_interim(self, text: str) -> None:
        self._emit("caption", {"text": text})

    def on_final_transcript(self, text: str) -> None:
        """Final transcript from the recognizer; language is tagged from the text."""
        self._accept_input(PendingInput(text=text.strip()))

    def submit_text(self, text: str, language: Optional[Union[str, Language]] = None) -> bool:
        """Manual text submission, optionally carrying its own target language.

        Returns:
            False if the text was empty and ignored
        """
        text = (text or "").strip()
        if not text:
            return False
        override = parse_language(language) if language is not None else None
        self._accept_input(PendingInput(text=text, language=override))
        return True

    def _accept_input(self, item: PendingInput) -> None:
        if not item.text:
            return
        if self.state.turn_phase in (TurnPhase.IDLE, TurnPhase.LISTENING):
            self._begin_thinking(item)
            return

        if self._pending is not None:
            self.stats["pending_overwrites"] += 1
            logger.info("[orchestrator] pending input replaced by newer utterance")
        self._pending = item
        self._log_event(SessionEvent.INPUT_BUFFERED, chars=len(item.text), phase=self.state.turn_phase.value)

    # ----------------- turn cycle ---------------------
    def _begin_thinking(self, item: PendingInput) -> None:
        language = item.language or detect_language(item.text)
        if language is not self.state.current_language:
            self.state.current_language = language
            self._emit("language_changed", {"language": language, "locale": locale_code(language)})

        user_turn = Turn(
            speaker=Speaker.USER,
            text=item.text,
            language=language,
            personal=contains_personal_detail(item.text),
        )
        self._trace_id = new_trace_id()
        self.stats["cycles"] += 1
        self._set_phase(TurnPhase.THINKING)
        self._emit("user_turn", {"turn": user_turn})
        self._log_event(SessionEvent.USER_TURN, language=language.value, chars=len(item.text), personal=user_turn.personal)

        window = self.memory.window()
        self._generation = asyncio.create_task(self._run_generation(self._epoch, user_turn, window))

    async def _run_generation(self, epoch: int, user_turn: Turn, window: List[Turn]) -> None:
        try:
            reply = await self.generator.generate(window, user_turn.text, user_turn.language)
        except Exception as e:
            logger.error(f"[orchestrator] generator raised: {type(e).__name__}: {e}", exc_info=True)
            reply = self.generator.fallback(user_turn.language, reason=str(e))

        if epoch != self._epoch:
            self._discard_stale("generation", epoch)
            return

        consented = True
        if self.memory.needs_consent(user_turn):
            consented = await self._resolve_consent(user_turn)
            if epoch != self._epoch:
                self._discard_stale("generation", epoch)
                return

        self._on_reply_ready(epoch, user_turn, reply, consented)

    async def _resolve_consent(self, user_turn: Turn) -> bool:
        try:
            approved = bool(await self.consent_resolver(user_turn.text))
        except Exception as e:
            logger.warning(f"[orchestrator] consent resolver failed, treating as declined: {e}")
            approved = False
        if not approved:
            self.stats["consent_denied"] += 1
        return approved

    def _on_reply_ready(self, epoch: int, user_turn: Turn, reply: Reply, consented: bool) -> None:
        self._generation = None
        if reply.fallback:
            self.stats["fallbacks"] += 1

        assistant_turn = Turn(
            speaker=Speaker.ASSISTANT,
            text=reply.text,
            language=user_turn.language,
            emotion=reply.emotion,
        )
        stored = self.memory.append_exchange(user_turn, assistant_turn, consented=consented)

        self._set_phase(TurnPhase.SPEAKING)
        self._emit("reply", {"reply": reply, "turn": assistant_turn})
        self._emit("expression", {"emotion": reply.emotion})
        self._log_event(
            SessionEvent.REPLY_READY,
            fallback=reply.fallback,
            emotion=reply.emotion.value,
            chars=len(reply.text),
            stored=stored,
        )
        self._playback = asyncio.create_task(self._run_playback(epoch, reply, user_turn.language))

    async def _run_playback(self, epoch: int, reply: Reply, language: Language) -> None:
        outcome = await self.speech.enqueue_speech(reply.text, language, reply.emotion)
        self._on_playback_complete(epoch, outcome)

    def _on_playback_complete(self, epoch: int, outcome: PlaybackOutcome) -> None:
        if epoch != self._epoch:
            self._discard_stale("playback", epoch)
            return
        self._playback = None
        self._log_event(SessionEvent.PLAYBACK_COMPLETE, outcome=outcome.value)

        pending, self._pending = self._pending, None
        if pending is not None:
            # straight back into Thinking, no Idle in between
            self._begin_thinking(pending)
            return

        self._trace_id = None
        self._set_phase(self._resting_phase())

    # ----------------- operator hooks -----------------
    async def toggle_microphone(self, enabled: bool) -> bool:
        """Start or stop continuous recognition.

        Returns:
            Whether the microphone is enabled afterwards
        """
        if enabled:
            if self.state.mic_enabled:
                return True
            try:
                await self.speech.start_listening(locale_code(self.state.current_language))
            except CapabilityUnavailable as e:
                logger.warning(f"[orchestrator] {e}; continuing with text input only")
                self._status("capability_unavailable", str(e), capability=e.capability)
                self._log_event(SessionEvent.CAPABILITY_UNAVAILABLE, capability=e.capability)
                return False
            self.state.mic_enabled = True
            if self.state.turn_phase is TurnPhase.IDLE:
                self._set_phase(TurnPhase.LISTENING)
        else:
            if not self.state.mic_enabled:
                return False
            self.state.mic_enabled = False
            if self.state.turn_phase is TurnPhase.LISTENING:
                self._set_phase(TurnPhase.IDLE)
            await self.speech.stop_listening()

        self._status("microphone", "on" if enabled else "off")
        return self.state.mic_enabled

    async def toggle_camera(self, enabled: bool) -> bool:
        """Start or stop the external presence source.

        Returns:
            Whether the camera is enabled afterwards
        """
        if enabled:
            if self.state.camera_enabled:
                return True
            try:
                if self.presence_source is None:
                    raise CapabilityUnavailable("camera", "no presence source configured")
                self.presence_source.start(self.on_presence_observation)
            except CapabilityUnavailable as e:
                logger.warning(f"[orchestrator] {e}; presence tracking disabled")
                self._status("capability_unavailable", str(e), capability=e.capability)
                self._log_event(SessionEvent.CAPABILITY_UNAVAILABLE, capability=e.capability)
                return False
            self.state.camera_enabled = True
        else:
            if not self.state.camera_enabled:
                return False
            self.state.camera_enabled = False
            if self.presence_source is not None:
                self.presence_source.stop()
            self.presence.reset()
            self._set_attention(Attention())

        self._status("camera", "on" if enabled else "off")
        return self.state.camera_enabled

    def set_memory_mode(self, mode: Union[str, MemoryMode]) -> MemoryMode:
        """Select session|consent|none. `none` clears memory immediately.

        Raises:
            ValueError: If mode is unknown
        """
        new_mode = self.memory.set_mode(mode)
        logger.info(f"[orchestrator] memory mode -> {new_mode.value}")
        self._log_event(SessionEvent.MEMORY_MODE, mode=new_mode.value)
        self._emit("memory_mode", {"mode": new_mode})
        return new_mode

    def reset(self) -> None:
        """Cancel in-flight work, clear pending input and memory, return to Idle."""
        self._epoch += 1
        self.stats["resets"] += 1

        if self._generation is not None and not self._generation.done():
            self._generation.cancel()
        self._generation = None
        if self._playback is not None and not self._playback.done():
            self._playback.cancel()
        self._playback = None
        self.speech.cancel_speech()

        self._pending = None
        self.memory.clear()
        self._log_event(SessionEvent.RESET)
        self._trace_id = None
        self._set_phase(TurnPhase.IDLE)

        default = self.default_language
        if self.state.current_language is not default:
            self.state.current_language = default
            self._emit("language_changed", {"language": default, "locale": locale_code(default)})

        logger.info(f"[orchestrator] session reset (epoch {self._epoch})")
        self._status("greeting", GREETING)

    # ----------------- presence -----------------------
    def on_presence_observation(self, obs: PresenceObservation) -> None:
        """Apply one pushed observation. Never touches the turn phase."""
        event = self.presence.observe(obs)
        if obs.present:
            self.state.last_presence_time = self.presence.last_presence_time
        if event is not None:
            self._apply_presence_event(event)
        elif obs.present and self.state.attention.present:
            gaze = gaze_target(obs.position)
            if gaze != self.state.attention.gaze:
                self._set_attention(Attention(present=True, gaze=gaze))

    def check_presence(self, now: Optional[float] = None) -> Optional[PresenceEvent]:
        """Timer path: detect absence when the detector has gone quiet."""
        event = self.presence.poll(time.monotonic() if now is None else now)
        if event is not None:
            self._apply_presence_event(event)
        return event

    def _apply_presence_event(self, event: PresenceEvent) -> None:
        if event.kind is PresenceChange.GAINED:
            attention = Attention(present=True, gaze=gaze_target(event.position))
        else:
            attention = Attention(present=False, gaze=(0.0, 0.0))
        logger.info(f"[orchestrator] presence {event.kind.value}")
        self._log_event(SessionEvent.PRESENCE, kind=event.kind.value)
        self._set_attention(attention)

    def _set_attention(self, attention: Attention) -> None:
        self.state.attention = attention
        self._emit("attention", asdict(attention))

    async def _presence_watchdog(self) -> None:
        while True:
            await asyncio.sleep(self.presence_poll_s)
            self.check_presence()

    # ----------------- lifecycle ----------------------
    async def start(self) -> None:
        if self._watchdog is None:
            self._watchdog = asyncio.create_task(self._presence_watchdog())
        logger.info("[orchestrator] session started")
        self._log_event(SessionEvent.SESSION_START)

    async def shutdown(self) -> None:
        """Tear down all in-flight work and release capabilities."""
        self._epoch += 1
        for task in (self._generation, self._playback, self._watchdog):
            if task is not None and not task.done():
                task.cancel()
        self._generation = self._playback = self._watchdog = None
        self._pending = None

        if self.state.camera_enabled and self.presence_source is not None:
            self.presence_source.stop()
        self.state.camera_enabled = False
        await self.speech.aclose()
        self.state.mic_enabled = False
        self._set_phase(TurnPhase.IDLE)
        logger.info("[orchestrator] session shut down")
        self._log_event(SessionEvent.SESSION_SHUTDOWN, **self.stats)
