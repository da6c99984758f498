"""Speech I/O coordination for ANISHA.

Wraps the recognition and synthesis capabilities as two asymmetric channels:

- Input: a continuous stream of interim/final transcripts. At most one final
  is delivered per utterance; interims are only ever forwarded as captions.
- Output: a single-slot playback queue. Enqueuing while something is audible
  cancels it (last write wins). Playback never raises into the caller.

Usage:
    speech = SpeechIO(stt=create_stt_backend("mock"), tts=create_tts_backend("mock"))
    speech.on_final = lambda text: ...
    await speech.start_listening("en-US")
    outcome = await speech.enqueue_speech("Hello!", Language.EN, Emotion.HAPPY)
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import Callable, Deque, Optional

from ..core.errors import CapabilityUnavailable
from ..core.language import Language
from ..core.turn import Emotion
from ..stt.base import SttBackend, TranscriptEvent
from ..tts.base import Prosody, TtsBackend, prosody_for

logger = logging.getLogger(__name__)


class PlaybackOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    FAILED = "failed"


class SpeechIO:
    """Coordinates listen/speak capabilities for one session."""

    def __init__(
        self,
        stt: Optional[SttBackend] = None,
        tts: Optional[TtsBackend] = None,
        finalized_memory: int = 256,
    ):
        """Initialize speech coordinator.

        Args:
            stt: Recognition backend, None if unavailable
            tts: Synthesis backend, None if unavailable (playback becomes a no-op)
            finalized_memory: How many finalized utterance ids to remember
        """
        self.stt = stt
        self.tts = tts
        self.on_interim: Optional[Callable[[str], None]] = None
        self.on_final: Optional[Callable[[str], None]] = None

        self._listening = False
        self._finalized: Deque[str] = deque(maxlen=finalized_memory)
        self._playback: Optional[asyncio.Task] = None

        self.stats = {
            "interims": 0,
            "finals": 0,
            "dropped_events": 0,
            "utterances": 0,
            "cancelled": 0,
            "failed": 0,
        }

    @property
    def listening(self) -> bool:
        return self._listening

    @property
    def speaking(self) -> bool:
        return self._playback is not None and not self._playback.done()

    @property
    def can_speak(self) -> bool:
        return self.tts is not None

    # ----------------- input channel -----------------
    async def start_listening(self, locale: str = "en-US") -> None:
        """Start continuous recognition. No-op when already listening.

        Raises:
            CapabilityUnavailable: If no recognizer is available
        """
        if self._listening:
            return
        if self.stt is None:
            raise CapabilityUnavailable("speech recognition", "no recognizer configured")

        await self.stt.start(self._on_transcript, locale)
        self._listening = True
        logger.info(f"[speech] listening ({locale})")

    async def stop_listening(self) -> None:
        """Stop recognition. No-op when not listening."""
        if not self._listening:
            return
        self._listening = False
        if self.stt is not None:
            await self.stt.stop()
        logger.info("[speech] stopped listening")

    def _on_transcript(self, event: TranscriptEvent) -> None:
        if not self._listening:
            self.stats["dropped_events"] += 1
            return
        if event.utterance_id in self._finalized:
            self.stats["dropped_events"] += 1
            logger.debug(f"[speech] dropping update for finalized utterance {event.utterance_id}")
            return

        if not event.is_final:
            self.stats["interims"] += 1
            if self.on_interim:
                self.on_interim(event.text)
            return

        self._finalized.append(event.utterance_id)
        text = event.text.strip()
        if not text:
            self.stats["dropped_events"] += 1
            return
        self.stats["finals"] += 1
        if self.on_final:
            self.on_final(text)

    # ----------------- output channel ----------------
    async def enqueue_speech(self, text: str, language: Language, emotion: Emotion) -> PlaybackOutcome:
        """Play one utterance, cancelling whatever is currently audible.

        Resolves on completion or cancellation and never raises, except that
        cancelling the awaiting task also cancels playback and propagates.
        """
        if self.tts is None or not text or not text.strip():
            return PlaybackOutcome.SKIPPED

        self.cancel_speech()
        prosody = prosody_for(language, emotion)
        task = asyncio.create_task(self._play(text, prosody))
        self._playback = task
        self.stats["utterances"] += 1

        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._playback is task and task.done():
                self._playback = None

        if task.cancelled():
            self.stats["cancelled"] += 1
            return PlaybackOutcome.CANCELLED

        exc = task.exception()
        if exc is not None:
            self.stats["failed"] += 1
            logger.warning(f"[speech] playback failed: {type(exc).__name__}: {exc}")
            return PlaybackOutcome.FAILED
        return PlaybackOutcome.COMPLETED

    async def _play(self, text: str, prosody: Prosody) -> None:
        logger.debug(f"[speech] speaking {len(text)} chars ({prosody.locale}, rate={prosody.rate}, pitch={prosody.pitch})")
        await self.tts.speak(text, prosody)

    def cancel_speech(self) -> bool:
        """Cancel the audible utterance, if any. Returns True if one was cancelled."""
        task = self._playback
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("[speech] playback cancelled")
        return True

    async def aclose(self) -> None:
        self.cancel_speech()
        await self.stop_listening()
