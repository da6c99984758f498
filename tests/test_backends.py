"""Tests for recognition/synthesis backend factories and mocks."""

import sys
import types

import numpy as np
import pytest

from anisha.core.errors import CapabilityUnavailable
from anisha.core.language import Language
from anisha.core.turn import Emotion
from anisha.stt.base import create_stt_backend
from anisha.stt.mock_backend import MockSttBackend
from anisha.stt.vosk_backend import VoskSttBackend
from anisha.tts.base import EMOTION_PROSODY, create_tts_backend, prosody_for
from anisha.tts.mock_backend import MockTtsBackend
from tests.fixtures.session_fakes import settle


class TestFactories:
    def test_mock_backends(self):
        assert isinstance(create_stt_backend("mock"), MockSttBackend)
        assert isinstance(create_tts_backend("mock", seconds_per_char=0.01), MockTtsBackend)

    def test_disabled_backends_are_unavailable(self):
        with pytest.raises(CapabilityUnavailable):
            create_stt_backend("none")
        with pytest.raises(CapabilityUnavailable):
            create_tts_backend("none")

    def test_unknown_backends(self):
        with pytest.raises(ValueError):
            create_stt_backend("whisper")
        with pytest.raises(ValueError):
            create_tts_backend("espeak")

    def test_piper_missing_binary(self):
        with pytest.raises(CapabilityUnavailable):
            create_tts_backend("piper", piper_bin="definitely-not-a-piper-binary")

    def test_vosk_missing_model_dir(self, tmp_path):
        with pytest.raises(CapabilityUnavailable):
            create_stt_backend("vosk", model_dirs={"default": str(tmp_path / "missing")})


class TestProsody:
    @pytest.mark.parametrize("language", list(Language))
    def test_same_adjustment_in_every_language(self, language):
        for emotion, (rate, pitch) in EMOTION_PROSODY.items():
            prosody = prosody_for(language, emotion)
            assert (prosody.rate, prosody.pitch, prosody.volume) == (rate, pitch, 1.0)

    def test_direction_of_adjustments(self):
        happy = prosody_for(Language.EN, Emotion.HAPPY)
        calm = prosody_for(Language.EN, Emotion.CALM)
        concerned = prosody_for(Language.EN, Emotion.CONCERNED)
        assert happy.rate > calm.rate > concerned.rate
        assert happy.pitch > calm.pitch > concerned.pitch


class TestMockTts:
    def test_duration_is_proportional_and_capped(self):
        tts = MockTtsBackend(seconds_per_char=0.1, max_duration_s=1.0)
        assert tts.duration_for("abcd") == pytest.approx(0.4)
        assert tts.duration_for("x" * 100) == 1.0


class _FakeInputStream:
    def __init__(self, **kwargs):
        self.callback = kwargs["callback"]
        self.closed = False

    def start(self):
        pass

    def stop(self):
        pass

    def close(self):
        self.closed = True


class _CrashingRecognizer:
    def __init__(self, model, sample_rate):
        pass

    def AcceptWaveform(self, block):
        raise RuntimeError("decoder crashed")


@pytest.fixture
def fake_audio_stack(monkeypatch):
    vosk = types.ModuleType("vosk")
    vosk.Model = lambda path: object()
    vosk.KaldiRecognizer = _CrashingRecognizer
    sounddevice = types.ModuleType("sounddevice")
    sounddevice.InputStream = _FakeInputStream
    monkeypatch.setitem(sys.modules, "vosk", vosk)
    monkeypatch.setitem(sys.modules, "sounddevice", sounddevice)


class TestVoskBackend:
    @pytest.mark.asyncio
    async def test_recognizer_crash_is_logged_and_stop_still_releases(self, fake_audio_stack, tmp_path, caplog):
        backend = VoskSttBackend(model_dirs={"default": str(tmp_path)})
        await backend.start(lambda event: None, "en-US")
        stream = backend._stream

        stream.callback(np.zeros((160, 1), dtype=np.float32), 160, None, None)
        await settle(lambda: any("recognizer stopped" in r.message for r in caplog.records))

        await backend.stop()
        assert stream.closed
        assert backend._task is None
        assert backend._stream is None
