"""Pytest configuration for ANISHA tests."""

import logging
import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture(autouse=True)
def _quiet_env(monkeypatch):
    """Keep developer ANISHA_* settings out of the tests."""
    for key in list(os.environ):
        if key.startswith("ANISHA_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def _debug_logging(caplog):
    caplog.set_level(logging.DEBUG, logger="anisha")
