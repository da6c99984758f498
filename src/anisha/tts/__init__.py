"""Speech synthesis backends for ANISHA."""
from .base import Prosody, TtsBackend, create_tts_backend, prosody_for

__all__ = ["Prosody", "TtsBackend", "create_tts_backend", "prosody_for"]
