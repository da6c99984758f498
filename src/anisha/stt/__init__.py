"""Speech recognition backends for ANISHA."""
from .base import SttBackend, TranscriptEvent, create_stt_backend

__all__ = ["SttBackend", "TranscriptEvent", "create_stt_backend"]
