"""Debounced presence tracking for ANISHA.

Consumes raw presence observations pushed by an external detector and turns
them into `gained`/`lost` transitions. A single missed detection does not
produce a transition: presence is only lost once no positive observation has
been seen for `timeout_s` seconds.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_PRESENCE_TIMEOUT_S = 2.0

Position = Tuple[float, float]


@dataclass(frozen=True)
class PresenceObservation:
    """One raw detector sample. Position is the normalised face centre (0..1)."""

    present: bool
    position: Optional[Position] = None
    confidence: float = 0.0
    timestamp: float = field(default_factory=time.monotonic)


class PresenceChange(str, Enum):
    GAINED = "gained"
    LOST = "lost"


@dataclass(frozen=True)
class PresenceEvent:
    kind: PresenceChange
    timestamp: float
    position: Optional[Position] = None


ObservationCallback = Callable[[PresenceObservation], None]


class PresenceSource(Protocol):
    """Protocol for external presence detectors (camera, sensors)."""

    def start(self, on_observation: ObservationCallback) -> None:
        """Begin pushing observations.

        Raises:
            CapabilityUnavailable: If the camera/detector cannot be used
        """
        ...

    def stop(self) -> None:
        ...


def gaze_target(position: Optional[Position]) -> Position:
    """Map a normalised face position to a look direction in [-1, 1] per axis."""
    if position is None:
        return (0.0, 0.0)
    gx, gy = np.clip((np.asarray(position, dtype=float) - 0.5) * 2.0, -1.0, 1.0)
    return (float(gx), float(gy))


class PresenceTracker:
    """Hysteresis over presence observations. Holds only the last positive time."""

    def __init__(self, timeout_s: float = DEFAULT_PRESENCE_TIMEOUT_S):
        if timeout_s <= 0:
            raise ValueError("timeout_s must be > 0")
        self.timeout_s = float(timeout_s)
        self.last_presence_time: Optional[float] = None
        self.last_position: Optional[Position] = None
        self._present = False

    @property
    def present(self) -> bool:
        return self._present

    def observe(self, obs: PresenceObservation) -> Optional[PresenceEvent]:
        """Apply one observation; returns a transition event if one occurred."""
        if obs.present:
            self.last_presence_time = obs.timestamp
            self.last_position = obs.position
            if not self._present:
                self._present = True
                logger.debug(f"[presence] gained (confidence={obs.confidence:.2f})")
                return PresenceEvent(PresenceChange.GAINED, obs.timestamp, obs.position)
            return None
        return self.poll(obs.timestamp)

    def poll(self, now: float) -> Optional[PresenceEvent]:
        """Timer path: emit `lost` once the absence window has elapsed."""
        if not self._present or self.last_presence_time is None:
            return None
        if now - self.last_presence_time >= self.timeout_s:
            self._present = False
            logger.debug(f"[presence] lost after {now - self.last_presence_time:.2f}s without detection")
            return PresenceEvent(PresenceChange.LOST, now, None)
        return None

    def reset(self) -> None:
        self.last_presence_time = None
        self.last_position = None
        self._present = False
