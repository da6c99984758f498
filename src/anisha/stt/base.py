"""Speech recognition interface and factory for ANISHA."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Literal, Protocol

from ..core.errors import CapabilityUnavailable


@dataclass(frozen=True)
class TranscriptEvent:
    """One recognition update for an utterance."""

    utterance_id: str
    rev: int
    text: str
    is_final: bool


TranscriptCallback = Callable[[TranscriptEvent], None]


class SttBackend(Protocol):
    """Protocol for continuous speech recognition backends."""

    async def start(self, on_event: TranscriptCallback, locale: str = "en-US") -> None:
        """Start continuous recognition.

        Args:
            on_event: Called on the event loop thread for every interim/final update
            locale: Recognition locale (e.g. "hi-IN")

        Raises:
            CapabilityUnavailable: If the microphone or recognizer cannot be used
        """
        ...

    async def stop(self) -> None:
        """Stop recognition. Safe to call when not started."""
        ...


BackendName = Literal["mock", "vosk", "none"]


def create_stt_backend(name: BackendName, **kwargs) -> SttBackend:
    """Create an STT backend by name.

    Args:
        name: Backend name ("mock" or "vosk")
        **kwargs: Backend-specific arguments

    Returns:
        STT backend instance

    Raises:
        ValueError: If backend name is unknown
        CapabilityUnavailable: If backend cannot be initialized (e.g., missing model)
    """
    if name == "mock":
        from .mock_backend import MockSttBackend

        return MockSttBackend(**kwargs)
    elif name == "vosk":
        from .vosk_backend import VoskSttBackend

        return VoskSttBackend(**kwargs)
    elif name == "none":
        raise CapabilityUnavailable("speech recognition", "disabled by configuration")
    else:
        raise ValueError(f"Unknown STT backend: {name}")
