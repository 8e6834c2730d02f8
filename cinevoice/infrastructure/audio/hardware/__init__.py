"""Audio device access: platform backend and the input device registry."""

from .backend import (
    AudioBackend, AudioDevice, CaptureConstraints, InputStream,
    PyAudioBackend, INPUT, OUTPUT
)
from .registry import DeviceRegistry

__all__ = [
    "AudioBackend", "AudioDevice", "CaptureConstraints", "InputStream",
    "PyAudioBackend", "DeviceRegistry", "INPUT", "OUTPUT"
]
