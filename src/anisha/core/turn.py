"""Turn records shared by the ANISHA session components."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from .language import Language


class Speaker(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Emotion(str, Enum):
    """Coarse emotional label attached to assistant replies."""

    HAPPY = "happy"
    CALM = "calm"
    CONCERNED = "concerned"


@dataclass(frozen=True)
class Turn:
    """One utterance in the conversation. Immutable once created."""

    speaker: Speaker
    text: str
    language: Language
    emotion: Optional[Emotion] = None
    personal: bool = False
    ts: float = field(default_factory=time.time)

    def as_message(self) -> Dict[str, str]:
        """Render as a chat-completions message."""
        return {"role": self.speaker.value, "content": self.text}


@dataclass(frozen=True)
class Reply:
    """Result of one response generation (remote or canned fallback)."""

    text: str
    language: Language
    emotion: Emotion
    fallback: bool = False


class SessionEvent(str, Enum):
    """Names of the structured events a session writes to its event log."""

    SESSION_START = "session_start"
    SESSION_SHUTDOWN = "session_shutdown"
    PHASE_CHANGED = "phase_changed"
    INPUT_BUFFERED = "input_buffered"
    USER_TURN = "user_turn"
    REPLY_READY = "reply_ready"
    PLAYBACK_COMPLETE = "playback_complete"
    STALE_RESULT = "stale_result"
    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    MEMORY_MODE = "memory_mode"
    PRESENCE = "presence"
    RESET = "reset"


# Events not listed here are logged at INFO.
EVENT_LEVELS: Dict[SessionEvent, str] = {
    SessionEvent.STALE_RESULT: "DEBUG",
    SessionEvent.CAPABILITY_UNAVAILABLE: "WARN",
}


class JsonLogger(Protocol):
    """Protocol for structured session event logging."""

    def log_event(self, name: str, payload: Optional[Dict[str, Any]] = None) -> None:
        """Log a named event with payload data."""
        ...


def new_trace_id() -> str:
    """Generate a new unique trace ID for a turn cycle."""
    return uuid.uuid4().hex
