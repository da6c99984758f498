"""Mock STT backend for testing and development."""

from __future__ import annotations

import itertools
from typing import List, Optional

from ..core.errors import CapabilityUnavailable
from .base import TranscriptCallback, TranscriptEvent


class MockSttBackend:
    """Recognizer whose transcripts are injected programmatically."""

    def __init__(self, available: bool = True):
        """Initialize mock STT backend.

        Args:
            available: If False, start() fails like a missing microphone
        """
        self.available = available
        self.locale: Optional[str] = None
        self.start_calls = 0
        self.stop_calls = 0
        self._on_event: Optional[TranscriptCallback] = None
        self._ids = itertools.count(1)
        self._current_id: Optional[str] = None
        self._rev = 0
        self.emitted: List[TranscriptEvent] = []

    @property
    def listening(self) -> bool:
        return self._on_event is not None

    async def start(self, on_event: TranscriptCallback, locale: str = "en-US") -> None:
        if not self.available:
            raise CapabilityUnavailable("speech recognition", "mock microphone unavailable")
        self.start_calls += 1
        self.locale = locale
        self._on_event = on_event

    async def stop(self) -> None:
        self.stop_calls += 1
        self._on_event = None

    def say(self, text: str, *, final: bool = True, utterance_id: Optional[str] = None) -> Optional[TranscriptEvent]:
        """Deliver a transcript update; returns None when not listening."""
        if self._on_event is None:
            return None

        if utterance_id is None:
            if self._current_id is None:
                self._current_id = f"utt-{next(self._ids)}"
                self._rev = 0
            utterance_id = self._current_id
        self._rev += 1

        event = TranscriptEvent(utterance_id=utterance_id, rev=self._rev, text=text, is_final=final)
        if final:
            self._current_id = None
        self.emitted.append(event)
        self._on_event(event)
        return event
