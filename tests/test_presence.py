"""Tests for debounced presence tracking and the camera source."""

import asyncio
import threading

import numpy as np
import pytest

from anisha.vision.camera_source import detect_lit_region
from anisha.vision.presence import (
    PresenceChange,
    PresenceObservation,
    PresenceTracker,
    gaze_target,
)
from tests.fixtures.session_fakes import settle


def seen(t, position=(0.5, 0.5)):
    return PresenceObservation(present=True, position=position, confidence=0.9, timestamp=t)


def missed(t):
    return PresenceObservation(present=False, timestamp=t)


class TestPresenceTracker:
    def test_starts_absent(self):
        tracker = PresenceTracker()
        assert tracker.present is False
        assert tracker.poll(100.0) is None

    def test_first_positive_observation_gains(self):
        tracker = PresenceTracker()
        event = tracker.observe(seen(1.0, (0.2, 0.4)))
        assert event.kind is PresenceChange.GAINED
        assert event.position == (0.2, 0.4)
        assert tracker.observe(seen(1.1)) is None
        assert tracker.last_presence_time == 1.1

    def test_single_missed_detection_does_not_lose(self):
        tracker = PresenceTracker(timeout_s=2.0)
        tracker.observe(seen(0.0))
        for t in (0.1, 0.2, 0.3):
            assert tracker.observe(missed(t)) is None
        assert tracker.observe(seen(0.4)) is None
        assert tracker.present

    def test_lost_after_timeout_since_last_positive(self):
        tracker = PresenceTracker(timeout_s=2.0)
        tracker.observe(seen(5.0))
        assert tracker.observe(missed(6.9)) is None
        event = tracker.observe(missed(7.0))
        assert event.kind is PresenceChange.LOST
        assert tracker.present is False
        assert tracker.observe(missed(8.0)) is None

    def test_poll_detects_absence_without_observations(self):
        tracker = PresenceTracker(timeout_s=0.5)
        tracker.observe(seen(1.0))
        assert tracker.poll(1.4) is None
        assert tracker.poll(1.5).kind is PresenceChange.LOST

    def test_regained_after_loss(self):
        tracker = PresenceTracker(timeout_s=1.0)
        tracker.observe(seen(0.0))
        tracker.poll(2.0)
        assert tracker.observe(seen(3.0)).kind is PresenceChange.GAINED

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            PresenceTracker(timeout_s=0)


class TestGazeTarget:
    @pytest.mark.parametrize("position,expected", [
        ((0.5, 0.5), (0.0, 0.0)),
        ((0.0, 1.0), (-1.0, 1.0)),
        ((0.75, 0.25), (0.5, -0.5)),
        ((1.4, -0.2), (1.0, -1.0)),
        (None, (0.0, 0.0)),
    ])
    def test_mapping(self, position, expected):
        assert gaze_target(position) == pytest.approx(expected)


def test_camera_source_without_opencv(monkeypatch):
    import sys

    from anisha.core.errors import CapabilityUnavailable
    from anisha.vision.camera_source import CameraPresenceSource

    monkeypatch.setitem(sys.modules, "cv2", None)
    with pytest.raises(CapabilityUnavailable):
        CameraPresenceSource()


class FakeCapture:
    """Stands in for cv2.VideoCapture; read() can be held open with a gate."""

    def __init__(self, frame, gate=None):
        self.frame = frame
        self.gate = gate
        self.released = threading.Event()
        self.read_after_release = False

    def isOpened(self):
        return True

    def set(self, prop, value):
        return True

    def read(self):
        if self.released.is_set():
            self.read_after_release = True
        if self.gate is not None:
            self.gate.wait(timeout=2.0)
        return True, self.frame

    def release(self):
        self.released.set()


class EmptyCascade:
    def empty(self):
        return True


@pytest.fixture
def fake_cv2(monkeypatch):
    import sys
    import types

    module = types.ModuleType("cv2")
    module.CAP_PROP_FRAME_WIDTH = 3
    module.CAP_PROP_FRAME_HEIGHT = 4
    module.data = types.SimpleNamespace(haarcascades="")
    module.CascadeClassifier = lambda path: EmptyCascade()
    module.captures = []

    module.VideoCapture = lambda index: module.captures.pop(0)
    monkeypatch.setitem(sys.modules, "cv2", module)
    return module


class TestLitRegion:
    def test_dark_frame_is_absent(self):
        assert detect_lit_region(np.zeros((120, 160, 3), dtype=np.uint8)) is None

    def test_centroid_follows_lit_area(self):
        frame = np.zeros((120, 160, 3), dtype=np.uint8)
        frame[:, 80:] = 200
        cx, cy = detect_lit_region(frame)
        assert 0.5 < cx < 1.0
        assert cy == pytest.approx(0.5, abs=0.1)

    def test_sparse_light_is_not_enough(self):
        frame = np.zeros((100, 100), dtype=np.uint8)
        frame[:10, :10] = 255
        assert detect_lit_region(frame) is None


class TestCameraSource:
    @pytest.mark.asyncio
    async def test_missing_cascade_falls_back_to_lit_pixels(self, fake_cv2):
        from anisha.vision.camera_source import FALLBACK_CONFIDENCE, CameraPresenceSource

        capture = FakeCapture(np.full((48, 64, 3), 200, dtype=np.uint8))
        fake_cv2.captures.append(capture)
        seen_obs = []
        source = CameraPresenceSource(interval_s=0.01)
        source.start(seen_obs.append)
        try:
            await settle(lambda: len(seen_obs) > 0)
        finally:
            source.stop()

        assert not source.uses_face_detection
        assert seen_obs[0].present
        assert seen_obs[0].confidence == FALLBACK_CONFIDENCE
        assert seen_obs[0].position == pytest.approx((0.5, 0.5), abs=0.1)
        assert capture.released.is_set()

    @pytest.mark.asyncio
    async def test_slow_worker_releases_capture_itself(self, fake_cv2):
        from anisha.vision.camera_source import CameraPresenceSource

        gate = threading.Event()
        capture = FakeCapture(np.zeros((48, 64, 3), dtype=np.uint8), gate=gate)
        fake_cv2.captures.append(capture)
        seen_obs = []
        source = CameraPresenceSource(interval_s=0.01, join_timeout_s=0.05)
        source.start(seen_obs.append)

        source.stop()
        assert not capture.released.is_set()

        gate.set()
        assert capture.released.wait(timeout=2.0)
        assert not capture.read_after_release
        await asyncio.sleep(0.05)
        assert seen_obs == []
