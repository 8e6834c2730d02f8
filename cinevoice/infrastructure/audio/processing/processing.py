"""
Basic audio processing functions including level metering, format conversions and normalization.
"""
import io
import wave
import struct
from typing import Tuple

import numpy as np
from scipy.signal import resample_poly

from ....config import TARGET_RMS


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    if x.size == 0:
        return x
    return x - np.mean(x)


def rms_level(x: np.ndarray) -> float:
    """Root-mean-square level of a float signal in [-1, 1]."""
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))


def peak_level(x: np.ndarray) -> float:
    """Absolute peak of a float signal in [-1, 1]."""
    if x.size == 0:
        return 0.0
    return float(np.max(np.abs(x)))


def resample(mono: np.ndarray, sr_from: int, sr_to: int) -> np.ndarray:
    """Resample between integer sample rates with a polyphase filter."""
    if sr_from == sr_to:
        return mono.astype(np.float32)
    divisor = np.gcd(int(sr_from), int(sr_to))
    return resample_poly(mono, up=sr_to // divisor, down=sr_from // divisor).astype(np.float32)


def normalize_audio(audio: np.ndarray, target_rms: float = TARGET_RMS) -> np.ndarray:
    """Normalize audio to target RMS level."""
    rms = rms_level(audio) + 1e-9
    gain = min(20.0, target_rms / rms)
    return audio * gain


def int16_to_float(raw: bytes) -> np.ndarray:
    """Decode little-endian PCM16 bytes into a float32 signal in [-1, 1]."""
    return np.frombuffer(raw, dtype=np.int16).astype(np.float32) / 32768.0


def float_to_pcm16(audio: np.ndarray) -> np.ndarray:
    """Encode a float signal as PCM16 samples."""
    return np.clip(audio * 32767, -32768, 32767).astype(np.int16)


def encode_wav(pcm16: np.ndarray, sr: int, channels: int = 1) -> bytes:
    """Write PCM16 audio data into an in-memory WAV file."""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sr)
        wf.writeframes(pcm16.tobytes())
    return buffer.getvalue()


def decode_wav(payload: bytes) -> Tuple[bytes, int, int, int]:
    """
    Read a WAV payload.

    Returns:
        (frames, sample_rate, channels, sample_width)

    Raises:
        ValueError: If the payload is not a complete WAV file
    """
    try:
        with wave.open(io.BytesIO(payload), "rb") as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            n_frames = wf.getnframes()
            frames = wf.readframes(n_frames)
    except (wave.Error, EOFError, struct.error) as e:
        raise ValueError(f"Invalid WAV payload: {e}")

    if sample_rate <= 0 or channels <= 0 or sample_width <= 0:
        raise ValueError(f"Invalid WAV format: {sample_rate} Hz, {channels} channel(s), {sample_width}-byte samples")

    expected = n_frames * channels * sample_width
    if n_frames == 0 or len(frames) < expected:
        raise ValueError(f"Truncated WAV payload: {len(frames)} of {expected} bytes")
    return frames, sample_rate, channels, sample_width
