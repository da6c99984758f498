"""TTS interface, prosody table and factory for ANISHA."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from ..core.errors import CapabilityUnavailable
from ..core.language import Language, locale_code
from ..core.turn import Emotion


@dataclass(frozen=True)
class Prosody:
    """Voice parameters for one utterance."""

    locale: str
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 1.0


# (rate, pitch) per emotion, applied the same way for every language.
EMOTION_PROSODY = {
    Emotion.HAPPY: (1.1, 1.1),
    Emotion.CALM: (1.0, 1.0),
    Emotion.CONCERNED: (0.9, 0.9),
}


def prosody_for(language: Language, emotion: Emotion) -> Prosody:
    """Map (language, emotion) to the prosody used for synthesis."""
    rate, pitch = EMOTION_PROSODY.get(emotion, EMOTION_PROSODY[Emotion.CALM])
    return Prosody(locale=locale_code(language), rate=rate, pitch=pitch)


class TtsBackend(Protocol):
    """Protocol for text-to-speech playback backends."""

    async def speak(self, text: str, prosody: Prosody) -> None:
        """Synthesize and play text; returns when playback has finished.

        Cancelling the awaiting task must stop audible playback.
        """
        ...


BackendName = Literal["mock", "piper", "none"]


def create_tts_backend(name: BackendName, **kwargs) -> TtsBackend:
    """Create a TTS backend by name.

    Args:
        name: Backend name ("mock" or "piper")
        **kwargs: Backend-specific arguments

    Returns:
        TTS backend instance

    Raises:
        ValueError: If backend name is unknown
        CapabilityUnavailable: If backend cannot be initialized (e.g., missing binaries)
    """
    if name == "mock":
        from .mock_backend import MockTtsBackend

        return MockTtsBackend(**kwargs)
    elif name == "piper":
        from .piper_backend import PiperTtsBackend

        return PiperTtsBackend(**kwargs)
    elif name == "none":
        raise CapabilityUnavailable("speech synthesis", "disabled by configuration")
    else:
        raise ValueError(f"Unknown TTS backend: {name}")
