"""OpenCV camera presence source for ANISHA.

Runs Haar-cascade face detection on a worker thread at a fixed cadence and
pushes PresenceObservation records back onto the session's event loop. When
the cascade file cannot be loaded the source falls back to a lit-pixel check
and reports lower-confidence observations instead of failing.

The worker thread owns the capture device and releases it when it exits.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from typing import Optional

import numpy as np

from ..core.errors import CapabilityUnavailable
from .presence import ObservationCallback, Position, PresenceObservation

logger = logging.getLogger(__name__)

FACE_CONFIDENCE = 1.0
FALLBACK_CONFIDENCE = 0.5

# Lit-pixel fallback: a sampled pixel counts as lit when any channel exceeds
# LIT_THRESHOLD; presence needs more than LIT_MIN_RATIO of samples lit.
LIT_THRESHOLD = 30
LIT_MIN_RATIO = 0.1
LIT_SAMPLE_STEP = 10


def detect_lit_region(
    frame,
    threshold: int = LIT_THRESHOLD,
    min_ratio: float = LIT_MIN_RATIO,
    step: int = LIT_SAMPLE_STEP,
) -> Optional[Position]:
    """Coarse presence guess for frames against a dark background.

    Returns:
        Normalised centroid of the lit samples, or None if too few are lit
    """
    pixels = np.asarray(frame)
    if pixels.ndim < 2 or pixels.size == 0:
        return None
    h, w = pixels.shape[:2]
    sample = pixels[::step, ::step]
    if sample.ndim == 2:
        sample = sample[..., np.newaxis]
    lit = (sample > threshold).any(axis=2)
    if lit.mean() <= min_ratio:
        return None
    ys, xs = np.nonzero(lit)
    cx = min(1.0, (xs.mean() * step + 0.5) / w)
    cy = min(1.0, (ys.mean() * step + 0.5) / h)
    return (float(cx), float(cy))


class CameraPresenceSource:
    """Face-presence detector backed by a local camera."""

    def __init__(
        self,
        camera_index: int = 0,
        frame_width: int = 640,
        frame_height: int = 480,
        interval_s: float = 0.1,
        join_timeout_s: float = 1.0,
    ):
        """Initialize camera source.

        Args:
            camera_index: OpenCV camera index
            frame_width: Requested capture width
            frame_height: Requested capture height
            interval_s: Detection cadence (0.1 = ~10 observations/s)
            join_timeout_s: How long stop() waits for the worker thread

        Raises:
            CapabilityUnavailable: If OpenCV is not installed
        """
        try:
            import cv2
        except ImportError as e:
            raise CapabilityUnavailable("camera", "opencv not available") from e

        self._cv2 = cv2
        self.camera_index = camera_index
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.interval_s = interval_s
        self.join_timeout_s = join_timeout_s

        self._cascade = None
        self._thread: Optional[threading.Thread] = None
        self._running: Optional[threading.Event] = None

    @property
    def uses_face_detection(self) -> bool:
        return self._cascade is not None

    def _open(self):
        cv2 = self._cv2
        cap = cv2.VideoCapture(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise CapabilityUnavailable("camera", f"camera {self.camera_index} could not be opened")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.frame_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.frame_height)

        casc_path = getattr(getattr(cv2, "data", None), "haarcascades", "")
        cascade = cv2.CascadeClassifier(os.path.join(casc_path, "haarcascade_frontalface_default.xml"))
        if cascade.empty():
            logger.warning("[camera] face cascade unavailable, using lit-pixel presence fallback")
            self._cascade = None
        else:
            self._cascade = cascade
        return cap

    def start(self, on_observation: ObservationCallback) -> None:
        if self._thread is not None:
            return
        loop = asyncio.get_running_loop()
        cap = self._open()
        self._running = threading.Event()
        self._running.set()
        self._thread = threading.Thread(
            target=self._loop,
            args=(loop, on_observation, cap, self._running),
            name="anisha-camera",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"[camera] presence detection started on camera {self.camera_index}")

    def stop(self) -> None:
        if self._running is not None:
            self._running.clear()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout=self.join_timeout_s)
            if thread.is_alive():
                logger.warning("[camera] worker still busy; camera is released when it exits")
        logger.info("[camera] presence detection stopped")

    def _detect(self, frame) -> PresenceObservation:
        now = time.monotonic()
        if self._cascade is None:
            centre = detect_lit_region(frame)
            if centre is None:
                return PresenceObservation(present=False, confidence=0.0, timestamp=now)
            return PresenceObservation(present=True, position=centre, confidence=FALLBACK_CONFIDENCE, timestamp=now)

        cv2 = self._cv2
        gray = cv2.equalizeHist(cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY))
        h, w = gray.shape[:2]
        faces = self._cascade.detectMultiScale(
            gray,
            scaleFactor=1.1,
            minNeighbors=5,
            minSize=(max(24, int(w * 0.1)), max(24, int(h * 0.1))),
        )
        if len(faces) == 0:
            return PresenceObservation(present=False, confidence=0.0, timestamp=now)

        x, y, fw, fh = max(faces, key=lambda f: f[2] * f[3])
        centre = ((x + fw / 2) / w, (y + fh / 2) / h)
        return PresenceObservation(present=True, position=centre, confidence=FACE_CONFIDENCE, timestamp=now)

    def _loop(
        self,
        loop: asyncio.AbstractEventLoop,
        on_observation: ObservationCallback,
        cap,
        running: threading.Event,
    ) -> None:
        try:
            while running.is_set():
                ok, frame = cap.read()
                if ok and running.is_set():
                    obs = self._detect(frame)
                    try:
                        loop.call_soon_threadsafe(on_observation, obs)
                    except RuntimeError:
                        # event loop closed
                        break
                time.sleep(self.interval_s)
        finally:
            cap.release()
