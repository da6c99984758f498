"""Bounded conversational memory for a single ANISHA session.

The log holds complete user/assistant exchanges in chronological order and is
truncated from the oldest end. It lives for the process lifetime only; nothing
is written to disk.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from enum import Enum
from typing import Awaitable, Callable, Deque, List, Optional, Union

from .turn import Speaker, Turn

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_LENGTH = 10


class MemoryMode(str, Enum):
    SESSION = "session"
    CONSENT = "consent"
    NONE = "none"


ConsentResolver = Callable[[str], Awaitable[bool]]

PERSONAL_PATTERNS = [
    re.compile(r"\bmy name is\b", re.IGNORECASE),
    re.compile(r"\bcall me\b", re.IGNORECASE),
    re.compile(r"\bi live (in|at|near)\b", re.IGNORECASE),
    re.compile(r"\bmy (address|birthday|phone|number|email|e-mail)\b", re.IGNORECASE),
    re.compile(r"\b[\w.+-]+@[\w-]+\.[\w.-]+\b"),
    re.compile(r"(?<!\d)(?:\+?\d[\d\s-]{8,}\d)(?!\d)"),
    re.compile(r"मेरा नाम"),
    re.compile(r"মোৰ নাম"),
]


def contains_personal_detail(text: str) -> bool:
    """Heuristic check for self-disclosed personal details."""
    return any(p.search(text or "") for p in PERSONAL_PATTERNS)


async def auto_approve_consent(detail: str) -> bool:
    """Default consent resolver: approves every request.

    There is no real consent capture behind this; wire a resolver that asks
    the user to get actual privacy enforcement.
    """
    logger.info(f"[memory] consent requested for personal detail ({len(detail)} chars), auto-approved")
    return True


def parse_memory_mode(value: Union[str, MemoryMode]) -> MemoryMode:
    if isinstance(value, MemoryMode):
        return value
    try:
        return MemoryMode(str(value).strip().lower())
    except ValueError as e:
        raise ValueError(f"Unknown memory mode: {value}") from e


class ConversationMemory:
    """Fixed-capacity ordered log of turns, owned by the orchestrator."""

    def __init__(
        self,
        max_history_length: int = DEFAULT_MAX_HISTORY_LENGTH,
        mode: MemoryMode = MemoryMode.SESSION,
    ):
        """Initialize conversation memory.

        Args:
            max_history_length: Number of user/assistant pairs retained
            mode: Initial retention mode
        """
        if max_history_length < 1:
            raise ValueError("max_history_length must be >= 1")
        self.max_history_length = int(max_history_length)
        self._turns: Deque[Turn] = deque(maxlen=2 * self.max_history_length)
        self._mode = MemoryMode.SESSION
        self.evicted = 0
        self.set_mode(mode)

    @property
    def mode(self) -> MemoryMode:
        return self._mode

    @property
    def capacity(self) -> int:
        return 2 * self.max_history_length

    def __len__(self) -> int:
        return len(self._turns)

    def turns(self) -> List[Turn]:
        """Full log, oldest first."""
        return list(self._turns)

    def set_mode(self, mode: Union[str, MemoryMode]) -> MemoryMode:
        """Switch retention mode. `none` clears the log immediately."""
        self._mode = parse_memory_mode(mode)
        if self._mode is MemoryMode.NONE:
            self.clear()
        return self._mode

    def needs_consent(self, user_turn: Turn) -> bool:
        """Whether storing this exchange requires an affirmative consent decision."""
        return self._mode is MemoryMode.CONSENT and user_turn.personal

    def append_exchange(self, user_turn: Turn, assistant_turn: Turn, *, consented: bool = True) -> bool:
        """Append one user/assistant pair, evicting the oldest turns past capacity.

        Returns:
            True if the exchange was stored
        """
        if self._mode is MemoryMode.NONE:
            return False
        if user_turn.speaker is not Speaker.USER or assistant_turn.speaker is not Speaker.ASSISTANT:
            raise ValueError("exchange must be (user turn, assistant turn)")
        if self.needs_consent(user_turn) and not consented:
            logger.info("[memory] consent declined, exchange not stored")
            return False

        before = len(self._turns)
        self._turns.append(user_turn)
        self._turns.append(assistant_turn)
        dropped = before + 2 - len(self._turns)
        if dropped:
            self.evicted += dropped
            logger.debug(f"[memory] evicted {dropped} oldest turns (capacity {self.capacity})")
        return True

    def window(self, size: Optional[int] = None) -> List[Turn]:
        """Most recent `size` turns (default max_history_length), oldest first."""
        n = self.max_history_length if size is None else max(0, int(size))
        if n == 0:
            return []
        return list(self._turns)[-n:]

    def clear(self) -> None:
        self._turns.clear()
