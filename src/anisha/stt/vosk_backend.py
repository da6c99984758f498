"""Vosk-based streaming STT backend for ANISHA.

Audio is captured with sounddevice on its own thread and handed to the event
loop; recognition runs in a worker thread so partial results keep flowing
while the session is thinking or speaking.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Dict, Optional

import numpy as np

from ..core.errors import CapabilityUnavailable
from .base import TranscriptCallback, TranscriptEvent

logger = logging.getLogger(__name__)


class VoskSttBackend:
    """Vosk speech-to-text backend with lazy initialization."""

    def __init__(
        self,
        model_dirs: Optional[Dict[str, str]] = None,
        sample_rate: int = 16000,
        block_ms: int = 100,
        device: Optional[int] = None,
    ):
        """Initialize Vosk STT backend.

        Args:
            model_dirs: Vosk model directory per locale; "default" is used for
                locales without their own model
            sample_rate: Capture sample rate in Hz
            block_ms: Capture block size in milliseconds
            device: Input device index (None for default)

        Raises:
            CapabilityUnavailable: If vosk/sounddevice are missing or no model exists
        """
        # Lazy imports to avoid hard dependency
        try:
            import vosk
            import sounddevice
        except ImportError as e:
            raise CapabilityUnavailable("speech recognition", f"{e.name} library not available") from e
        except OSError as e:
            # sounddevice raises OSError when PortAudio is missing
            raise CapabilityUnavailable("speech recognition", str(e)) from e

        if not model_dirs:
            default_dir = os.getenv("ANISHA_VOSK_MODEL_DIR") or os.path.expanduser("~/.anisha/models/vosk")
            model_dirs = {"default": default_dir}

        missing = [d for d in model_dirs.values() if not os.path.isdir(d)]
        if len(missing) == len(model_dirs):
            raise CapabilityUnavailable("speech recognition", f"vosk model directory not found: {missing[0]}")

        self._vosk = vosk
        self._sd = sounddevice
        self.model_dirs = model_dirs
        self.sample_rate = int(sample_rate)
        self.block_size = max(1, (self.sample_rate * int(block_ms)) // 1000)
        self.device = device

        self._models: Dict[str, object] = {}
        self._stream = None
        self._queue: Optional[asyncio.Queue] = None
        self._task: Optional[asyncio.Task] = None
        self._utterance = 0

    def _model_for(self, locale: str):
        """Load (once) the model for a locale, falling back to the default model."""
        key = locale if locale in self.model_dirs and os.path.isdir(self.model_dirs[locale]) else "default"
        if key not in self.model_dirs or not os.path.isdir(self.model_dirs[key]):
            key = next(k for k, d in self.model_dirs.items() if os.path.isdir(d))
        if key not in self._models:
            try:
                self._models[key] = self._vosk.Model(self.model_dirs[key])
            except Exception as e:
                raise CapabilityUnavailable("speech recognition", f"failed to load vosk model: {e}") from e
        return self._models[key]

    async def start(self, on_event: TranscriptCallback, locale: str = "en-US") -> None:
        if self._task is not None:
            return

        loop = asyncio.get_running_loop()
        recognizer = self._vosk.KaldiRecognizer(self._model_for(locale), self.sample_rate)
        self._queue = asyncio.Queue(maxsize=256)
        queue = self._queue

        def _push(block: bytes) -> None:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(block)

        def _callback(indata, frames, time_info, status) -> None:
            if status:
                logger.debug(f"[vosk] capture status: {status}")
            pcm16 = (np.clip(indata[:, 0], -1.0, 1.0) * 32767.0).astype(np.int16).tobytes()
            loop.call_soon_threadsafe(_push, pcm16)

        try:
            self._stream = self._sd.InputStream(
                samplerate=self.sample_rate,
                channels=1,
                dtype="float32",
                blocksize=self.block_size,
                device=self.device,
                callback=_callback,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise CapabilityUnavailable("microphone", str(e)) from e

        self._task = asyncio.create_task(self._recognize(recognizer, on_event))
        self._task.add_done_callback(self._on_recognizer_done)
        logger.info(f"[vosk] listening ({locale}, {self.sample_rate} Hz)")

    def _on_recognizer_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"[vosk] recognizer stopped: {type(exc).__name__}: {exc}", exc_info=exc)

    async def _recognize(self, recognizer, on_event: TranscriptCallback) -> None:
        rev = 0
        last_partial = ""
        while True:
            block = await self._queue.get()
            is_final = await asyncio.to_thread(recognizer.AcceptWaveform, block)
            uid = f"vosk-{self._utterance}"
            if is_final:
                text = json.loads(recognizer.Result()).get("text", "").strip()
                rev += 1
                if text:
                    on_event(TranscriptEvent(utterance_id=uid, rev=rev, text=text, is_final=True))
                self._utterance += 1
                rev = 0
                last_partial = ""
            else:
                partial = json.loads(recognizer.PartialResult()).get("partial", "").strip()
                if partial and partial != last_partial:
                    rev += 1
                    last_partial = partial
                    on_event(TranscriptEvent(utterance_id=uid, rev=rev, text=partial, is_final=False))

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"[vosk] recognizer task had already failed: {e}")
            self._task = None
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        self._queue = None
