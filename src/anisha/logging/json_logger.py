"""JSONL session journal for ANISHA.

Each line is one session event:

    {"ts": "...", "session": "<id>", "seq": 12, "level": "INFO",
     "name": "reply_ready", "trace_id": "...", "epoch": 3, ...}

`session` identifies one process run and `seq` orders its entries across
file rotation. The level comes from the event name (see EVENT_LEVELS) unless
the payload carries an explicit "level" key.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, TextIO, Union

from ..core.turn import EVENT_LEVELS, SessionEvent, new_trace_id

logger = logging.getLogger(__name__)

LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


def level_for(name: Union[str, SessionEvent]) -> str:
    """Default journal level of an event name."""
    try:
        return EVENT_LEVELS.get(SessionEvent(name), "INFO")
    except ValueError:
        return "INFO"


class JsonFileLogger:
    """Session journal written as JSONL, rotated by day or by size."""

    def __init__(
        self,
        log_dir: str,
        level: str = "INFO",
        *,
        rotate_mode: str = "day",
        max_bytes: int = 1_048_576,
        backups: int = 7,
        mirror_stdout: bool = False,
        session_id: Optional[str] = None,
    ) -> None:
        """Initialize the session journal.

        Args:
            log_dir: Directory to write journal files
            level: Minimum event level (DEBUG|INFO|WARN|ERROR)
            rotate_mode: "day" (anisha-YYYYMMDD.jsonl) or "size" (anisha-current.jsonl)
            max_bytes: Rotation threshold when rotate_mode="size"
            backups: Rotated files kept when rotate_mode="size"
            mirror_stdout: Also print each line to stdout
            session_id: Run identifier stamped on every entry (random if None)
        """
        if rotate_mode not in ("day", "size"):
            raise ValueError(f"Unknown rotate mode: {rotate_mode}")
        if level.upper() not in LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        if backups < 1:
            raise ValueError("backups must be >= 1")

        self.log_dir = Path(log_dir)
        self.level = level.upper()
        self.rotate_mode = rotate_mode
        self.max_bytes = max_bytes
        self.backups = backups
        self.mirror_stdout = mirror_stdout
        self.session_id = session_id or new_trace_id()[:12]

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._file: Optional[TextIO] = None
        self._file_path: Optional[Path] = None
        self._seq = 0

    def _path(self) -> Path:
        if self.rotate_mode == "day":
            return self.log_dir / f"anisha-{datetime.now(timezone.utc):%Y%m%d}.jsonl"
        return self.log_dir / "anisha-current.jsonl"

    def _backup(self, n: int) -> Path:
        return self.log_dir / f"anisha-{n}.jsonl"

    def _roll(self, current: Path) -> None:
        """anisha-current -> anisha-1 -> ... -> anisha-<backups>, dropping the oldest."""
        self.close()
        oldest = self._backup(self.backups)
        if oldest.exists():
            oldest.unlink()
        for n in range(self.backups - 1, 0, -1):
            if self._backup(n).exists():
                self._backup(n).replace(self._backup(n + 1))
        current.replace(self._backup(1))

    def _stream(self) -> TextIO:
        path = self._path()
        if self.rotate_mode == "size" and path.exists() and path.stat().st_size >= self.max_bytes:
            self._roll(path)
        if self._file is None or self._file_path != path:
            self.close()
            self._file = open(path, "a", encoding="utf-8")
            self._file_path = path
        return self._file

    def log_event(self, name: Union[str, SessionEvent], payload: Optional[Dict[str, Any]] = None) -> None:
        """Append one event line.

        Args:
            name: SessionEvent (or any other event name)
            payload: Event fields; a "level" key overrides the event's default level
        """
        fields = dict(payload or {})
        event_level = str(fields.pop("level", level_for(name))).upper()
        if LEVELS.get(event_level, 20) < LEVELS[self.level]:
            return

        self._seq += 1
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "session": self.session_id,
            "seq": self._seq,
            "level": event_level,
            "name": name.value if isinstance(name, SessionEvent) else str(name),
        }
        entry.update(fields)
        line = json.dumps(entry, separators=(",", ":"), ensure_ascii=False, default=str)

        try:
            stream = self._stream()
            stream.write(line + "\n")
            stream.flush()
        except OSError as e:
            logger.error(f"[journal] write to {self.log_dir} failed: {e}")

        if self.mirror_stdout:
            print(line)

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            self._file_path = None

    def __enter__(self) -> JsonFileLogger:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def create_logger_from_env() -> Optional[JsonFileLogger]:
    """Create a journal from ANISHA_LOG_* environment variables.

    Returns None unless ANISHA_LOG_DIR is set.
    """
    log_dir = os.getenv("ANISHA_LOG_DIR")
    if not log_dir:
        return None
    return JsonFileLogger(
        log_dir=os.path.expanduser(log_dir),
        level=os.getenv("ANISHA_LOG_LEVEL", "INFO"),
        rotate_mode=os.getenv("ANISHA_LOG_ROTATE_MODE", "day"),
        max_bytes=int(os.getenv("ANISHA_LOG_MAX_BYTES", "1048576")),
        backups=int(os.getenv("ANISHA_LOG_BACKUPS", "7")),
        mirror_stdout=os.getenv("ANISHA_LOG_STDOUT", "0") == "1",
        session_id=os.getenv("ANISHA_SESSION_ID") or None,
    )
