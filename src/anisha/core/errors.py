"""Error taxonomy for the ANISHA session core.

None of these are fatal to the process. The orchestrator converts every one of
them into a degraded-but-usable session.
"""

from __future__ import annotations


class AnishaError(Exception):
    """Base class for all ANISHA errors."""


class CapabilityUnavailable(AnishaError):
    """Speech, camera or presence hardware/permission is absent."""

    def __init__(self, capability: str, reason: str = ""):
        self.capability = capability
        self.reason = reason
        msg = f"{capability} unavailable"
        if reason:
            msg = f"{msg}: {reason}"
        super().__init__(msg)


class GenerationFailure(AnishaError):
    """The remote reply capability failed (network, status or payload)."""


class StaleResult(AnishaError):
    """An async completion arrived after a reset advanced the session epoch."""

    def __init__(self, kind: str, epoch: int, current_epoch: int):
        self.kind = kind
        self.epoch = epoch
        self.current_epoch = current_epoch
        super().__init__(f"stale {kind} result (epoch {epoch}, current {current_epoch})")


class ConfigError(AnishaError):
    """Invalid configuration file or value."""
