"""Piper-based TTS backend for ANISHA."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, List, Optional

from ..core.errors import CapabilityUnavailable
from .base import Prosody

logger = logging.getLogger(__name__)

PLAYERS = ("paplay", "aplay")


class PiperTtsBackend:
    """Piper CLI synthesis followed by playback through paplay/aplay.

    Speaking rate maps to Piper's length scale; Piper has no pitch control, so
    pitch adjustments are not applied by this backend.
    """

    def __init__(
        self,
        voices: Optional[Dict[str, str]] = None,
        out_dir: Optional[str] = None,
        piper_bin: str = "piper",
        player: Optional[str] = None,
    ):
        """Initialize Piper TTS backend.

        Args:
            voices: Piper voice model path per locale ("en-US" -> model.onnx);
                "default" is used for locales without their own voice
            out_dir: Directory for temporary WAV files
            piper_bin: Piper executable name or path
            player: Playback command (default: first of paplay/aplay found)

        Raises:
            CapabilityUnavailable: If piper, a player or any voice model is missing
        """
        self.piper_bin = shutil.which(piper_bin)
        if self.piper_bin is None:
            raise CapabilityUnavailable("speech synthesis", f"{piper_bin} not found on PATH")

        candidates = [player] if player else list(PLAYERS)
        found = [shutil.which(p) for p in candidates]
        found = [p for p in found if p]
        if not found:
            raise CapabilityUnavailable("speech synthesis", f"no audio player found ({', '.join(candidates)})")
        self.player = found[0]

        self.voices = {k: v for k, v in (voices or {}).items() if v and Path(v).exists()}
        if not self.voices:
            raise CapabilityUnavailable("speech synthesis", "no piper voice model configured")

        self.out_dir = out_dir or tempfile.gettempdir()
        Path(self.out_dir).mkdir(parents=True, exist_ok=True)

    def _voice_for(self, locale: str) -> str:
        return self.voices.get(locale) or self.voices.get("default") or next(iter(self.voices.values()))

    async def _run(self, cmd: List[str], stdin: Optional[bytes] = None) -> None:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            _, err = await proc.communicate(stdin)
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise
        if proc.returncode != 0:
            raise RuntimeError(f"{os.path.basename(cmd[0])} exited {proc.returncode}: {err.decode(errors='replace').strip()}")

    async def speak(self, text: str, prosody: Prosody) -> None:
        fd, wav_path = tempfile.mkstemp(suffix=".wav", prefix="anisha_tts_", dir=self.out_dir)
        os.close(fd)
        try:
            length_scale = 1.0 / max(0.1, prosody.rate)
            await self._run(
                [
                    self.piper_bin,
                    "--model", self._voice_for(prosody.locale),
                    "--output_file", wav_path,
                    "--length_scale", f"{length_scale:.3f}",
                ],
                stdin=text.encode("utf-8"),
            )
            await self._run([self.player, wav_path])
        finally:
            try:
                os.unlink(wav_path)
            except OSError:
                pass
