"""Audio signal processing and the speech capture session."""

from .processing import (
    stereo_to_mono,
    remove_dc,
    rms_level,
    peak_level,
    resample,
    normalize_audio,
    int16_to_float,
    float_to_pcm16,
    encode_wav,
    decode_wav
)
from .capture import CaptureSession, CaptureState, CaptureErrorKind, classify_error

__all__ = [
    "CaptureSession",
    "CaptureState",
    "CaptureErrorKind",
    "classify_error",
    "stereo_to_mono",
    "remove_dc",
    "rms_level",
    "peak_level",
    "resample",
    "normalize_audio",
    "int16_to_float",
    "float_to_pcm16",
    "encode_wav",
    "decode_wav"
]
