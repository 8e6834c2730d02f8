"""
tests/test_processing.py — signal helpers used by verification and recognition

Covers:
  - Level metering on silence, tones and empty buffers
  - Channel down-mix and DC removal
  - Polyphase resampling length
  - PCM16 conversions and WAV decoding errors
"""

import numpy as np
import pytest

from cinevoice.conversation.testing import make_wav_with_header
from cinevoice.infrastructure.audio.processing import (
    decode_wav, encode_wav, float_to_pcm16, int16_to_float, normalize_audio, peak_level,
    remove_dc, resample, rms_level, stereo_to_mono
)


def _tone(amplitude=0.5, seconds=0.1, sr=16000):
    t = np.arange(int(sr * seconds)) / sr
    return (amplitude * np.sin(2 * np.pi * 440 * t)).astype(np.float32)


class TestLevels:
    def test_silence(self):
        silence = np.zeros(1600, dtype=np.float32)
        assert rms_level(silence) == 0.0
        assert peak_level(silence) == 0.0

    def test_tone(self):
        tone = _tone(0.5)
        assert rms_level(tone) == pytest.approx(0.5 / np.sqrt(2), rel=1e-2)
        assert peak_level(tone) == pytest.approx(0.5, rel=1e-2)

    def test_empty(self):
        empty = np.array([], dtype=np.float32)
        assert rms_level(empty) == 0.0
        assert peak_level(empty) == 0.0
        assert remove_dc(empty).size == 0


class TestConversions:
    def test_stereo_to_mono(self):
        stereo = np.array([[1.0, 0.0], [0.5, 0.5]], dtype=np.float32)
        assert np.allclose(stereo_to_mono(stereo), [0.5, 0.5])

    def test_remove_dc(self):
        assert abs(float(np.mean(remove_dc(_tone() + 0.2)))) < 1e-5

    def test_resample_length(self):
        y = resample(_tone(seconds=1.0, sr=44100), 44100, 16000)
        assert y.dtype == np.float32
        assert len(y) == 16000

    def test_normalize_reaches_target(self):
        y = normalize_audio(_tone(0.01), target_rms=0.06)
        assert rms_level(y) == pytest.approx(0.06, rel=1e-2)

    def test_pcm16_round_values(self):
        pcm = float_to_pcm16(np.array([0.0, 1.0, -1.0, 2.0], dtype=np.float32))
        assert pcm.tolist() == [0, 32767, -32767, 32767]
        back = int16_to_float(pcm.tobytes())
        assert back[1] == pytest.approx(32767 / 32768.0)


class TestWav:
    def test_decode(self):
        payload = encode_wav(float_to_pcm16(_tone()), 16000)
        frames, sr, channels, width = decode_wav(payload)
        assert (sr, channels, width) == (16000, 1, 2)
        assert len(frames) == 1600 * 2

    @pytest.mark.parametrize("payload", [b"not a wav", b"RIFF", make_wav_with_header(sample_rate=0)])
    def test_invalid(self, payload):
        with pytest.raises(ValueError):
            decode_wav(payload)

    def test_empty_wav_rejected(self):
        with pytest.raises(ValueError):
            decode_wav(encode_wav(np.zeros(0, dtype=np.int16), 16000))
