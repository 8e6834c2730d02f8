"""
Platform audio backend: device enumeration and input streams.

PyAudio is imported lazily so the rest of the package works on machines
without PortAudio (tests use the fake backend in conversation.testing).
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from ....config import CHANNELS, DEFAULT_DEVICE_ID, FRAME_MS, SAMPLE_RATE_CAPTURE
from ....utils import with_suppressed_audio_warnings
from ..processing.processing import int16_to_float

logger = logging.getLogger("audio_backend")

INPUT = "input"
OUTPUT = "output"


@dataclass(frozen=True)
class AudioDevice:
    """An audio endpoint reported by the platform."""
    id: str
    label: str
    kind: str  # "input" or "output"
    is_default: bool = False

    @property
    def display_name(self) -> str:
        if self.label:
            return self.label
        prefix = "Microphone" if self.kind == INPUT else "Speaker"
        return f"{prefix} {self.id[:8]}..."


@dataclass(frozen=True)
class CaptureConstraints:
    """Fixed constraints every capture stream is opened with."""
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    channels: int = CHANNELS
    sample_rate: Optional[int] = None  # None: use the device's preferred rate


class InputStream(ABC):
    """An open capture stream. Must be closed exactly once."""

    sample_rate: int

    @abstractmethod
    def read(self, frames: int) -> np.ndarray:
        """Read `frames` mono samples as float32 in [-1, 1]."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device. Safe to call more than once."""

    def __enter__(self) -> "InputStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class AudioBackend(ABC):
    """Platform capability for listing devices and opening capture streams."""

    @abstractmethod
    def enumerate_devices(self) -> List[AudioDevice]:
        """Return every input and output device currently attached."""

    @abstractmethod
    def open_input_stream(self, device_id: str, constraints: CaptureConstraints) -> InputStream:
        """Open a capture stream on `device_id`.

        Raises:
            PermissionError: The platform refused microphone access
            OSError: The device is missing or cannot be opened
        """


class PyAudioInputStream(InputStream):
    """PortAudio capture stream that owns its own PyAudio instance."""

    def __init__(self, pa, stream, sample_rate: int):
        self._pa = pa
        self._stream = stream
        self.sample_rate = sample_rate
        self._closed = False

    def read(self, frames: int) -> np.ndarray:
        if self._closed:
            raise OSError("Stream is closed")
        raw = self._stream.read(frames, exception_on_overflow=False)
        return int16_to_float(raw)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.stop_stream()
            self._stream.close()
        finally:
            self._pa.terminate()


class PyAudioBackend(AudioBackend):
    """AudioBackend over PortAudio via PyAudio."""

    def __init__(self, frame_ms: int = FRAME_MS):
        self.frame_ms = frame_ms

    @with_suppressed_audio_warnings
    def enumerate_devices(self) -> List[AudioDevice]:
        import pyaudio

        # A fresh PortAudio instance is the only way to see hot-plugged devices
        pa = pyaudio.PyAudio()
        try:
            default_input = self._default_index(pa.get_default_input_device_info)
            default_output = self._default_index(pa.get_default_output_device_info)

            devices: List[AudioDevice] = []
            for i in range(pa.get_device_count()):
                info = pa.get_device_info_by_index(i)
                name = str(info.get("name", ""))
                if int(info.get("maxInputChannels", 0)) > 0:
                    devices.append(AudioDevice(str(i), name, INPUT, is_default=(i == default_input)))
                if int(info.get("maxOutputChannels", 0)) > 0:
                    devices.append(AudioDevice(str(i), name, OUTPUT, is_default=(i == default_output)))
            logger.debug(f"Enumerated {len(devices)} audio endpoints")
            return devices
        finally:
            pa.terminate()

    @staticmethod
    def _default_index(getter) -> Optional[int]:
        try:
            return int(getter()["index"])
        except (IOError, OSError, KeyError):
            return None

    @with_suppressed_audio_warnings
    def open_input_stream(self, device_id: str, constraints: CaptureConstraints) -> InputStream:
        import pyaudio

        # PortAudio has no echo cancellation, noise suppression or AGC switches
        logger.debug(
            f"Opening device {device_id} (echo_cancellation={constraints.echo_cancellation}, "
            f"noise_suppression={constraints.noise_suppression}, auto_gain={constraints.auto_gain_control})"
        )

        pa = pyaudio.PyAudio()
        try:
            index = None if device_id == DEFAULT_DEVICE_ID else int(device_id)
            if index is None:
                info = pa.get_default_input_device_info()
            else:
                info = pa.get_device_info_by_index(index)
            sample_rate = constraints.sample_rate or int(info.get("defaultSampleRate", SAMPLE_RATE_CAPTURE))
            frames_per_buffer = int(sample_rate * self.frame_ms / 1000)

            stream = pa.open(
                format=pyaudio.paInt16,
                channels=constraints.channels,
                rate=sample_rate,
                input=True,
                input_device_index=index,
                frames_per_buffer=frames_per_buffer,
            )
        except ValueError as e:
            pa.terminate()
            raise OSError(f"Invalid device id {device_id!r}: {e}")
        except Exception:
            pa.terminate()
            raise

        logger.info(f"Opened input device {device_id} at {sample_rate} Hz")
        return PyAudioInputStream(pa, stream, sample_rate)
