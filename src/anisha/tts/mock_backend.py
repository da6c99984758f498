"""Mock TTS backend for testing and development."""

from __future__ import annotations

import asyncio
from typing import List, Tuple

from .base import Prosody


class MockTtsBackend:
    """Playback simulator: 'plays' each utterance for a time proportional to its length."""

    def __init__(self, seconds_per_char: float = 0.0, max_duration_s: float = 5.0):
        """Initialize mock TTS backend.

        Args:
            seconds_per_char: Simulated speaking time per character
            max_duration_s: Upper bound on simulated utterance duration
        """
        self.seconds_per_char = seconds_per_char
        self.max_duration_s = max_duration_s
        self.spoken: List[Tuple[str, Prosody]] = []
        self.completed: List[str] = []
        self.cancelled: List[str] = []

    def duration_for(self, text: str) -> float:
        return min(self.max_duration_s, len(text) * self.seconds_per_char)

    async def speak(self, text: str, prosody: Prosody) -> None:
        self.spoken.append((text, prosody))
        try:
            await asyncio.sleep(self.duration_for(text))
        except asyncio.CancelledError:
            self.cancelled.append(text)
            raise
        self.completed.append(text)
