"""
Audio playback with a queryable playback position (drives lip sync).
"""
import threading
import logging
from abc import ABC, abstractmethod
from typing import Optional

from ....config import SPEAKER_BUFFER_SIZE
from ....utils import with_suppressed_audio_warnings
from .tts import AudioHandle

logger = logging.getLogger("speech_playback")


class Playback(ABC):
    """Something that plays one AudioHandle at a time and reports progress."""

    @abstractmethod
    def play(self, audio: AudioHandle) -> None:
        """Start playing `audio`, replacing anything already playing."""

    @abstractmethod
    def stop(self) -> None:
        """Stop playback. Safe to call when idle."""

    @property
    @abstractmethod
    def position(self) -> float:
        """Seconds of the current audio already played."""

    @property
    @abstractmethod
    def duration(self) -> float:
        """Length of the current audio in seconds (0.0 when idle)."""

    @property
    @abstractmethod
    def is_playing(self) -> bool:
        """True while audio is being played."""


class PyAudioPlayer(Playback):
    """Plays PCM through PortAudio on a background thread."""

    def __init__(self, output_device: Optional[int] = None, buffer_size: int = SPEAKER_BUFFER_SIZE):
        self.output_device = output_device
        self.buffer_size = buffer_size
        self._audio: Optional[AudioHandle] = None
        self._frames_written = 0
        self._playing = threading.Event()
        self._stop_requested = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def play(self, audio: AudioHandle) -> None:
        self.stop()
        with self._lock:
            self._audio = audio
            self._frames_written = 0
        self._stop_requested.clear()
        self._playing.set()
        self._thread = threading.Thread(target=self._run, args=(audio,), daemon=True)
        self._thread.start()

    def _run(self, audio: AudioHandle) -> None:
        try:
            self._write(audio)
        except ImportError as e:
            logger.error(f"Playback unavailable: {e}")
        finally:
            self._playing.clear()

    @with_suppressed_audio_warnings
    def _write(self, audio: AudioHandle) -> None:
        import pyaudio

        pa = pyaudio.PyAudio()
        stream = None
        try:
            stream = pa.open(
                format=pa.get_format_from_width(audio.sample_width),
                channels=audio.channels,
                rate=audio.sample_rate,
                output=True,
                output_device_index=self.output_device,
                frames_per_buffer=self.buffer_size,
            )
            bytes_per_frame = audio.channels * audio.sample_width
            chunk_bytes = self.buffer_size * bytes_per_frame
            for offset in range(0, len(audio.pcm), chunk_bytes):
                if self._stop_requested.is_set():
                    break
                chunk = audio.pcm[offset:offset + chunk_bytes]
                stream.write(chunk)
                with self._lock:
                    self._frames_written += len(chunk) // bytes_per_frame
        except OSError as e:
            logger.error(f"Playback failed: {e}")
        finally:
            if stream is not None:
                stream.stop_stream()
                stream.close()
            pa.terminate()

    def stop(self) -> None:
        self._stop_requested.set()
        if self._thread is not None:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._playing.clear()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the current audio finishes."""
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def position(self) -> float:
        with self._lock:
            if self._audio is None:
                return 0.0
            return self._frames_written / float(self._audio.sample_rate)

    @property
    def duration(self) -> float:
        with self._lock:
            return self._audio.duration if self._audio is not None else 0.0

    @property
    def is_playing(self) -> bool:
        return self._playing.is_set()
