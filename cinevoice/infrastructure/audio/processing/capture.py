"""
Speech capture session: one recognition attempt at a time with bounded automatic restarts.
"""
import time
import threading
import logging
from enum import Enum
from typing import Callable, Optional

from ....config import MAX_AUTO_RESTARTS, RESTART_DELAY
from ....exceptions import (
    CaptureBusy, DeviceUnavailable, NoSpeechDetected, PermissionDenied, RecognitionFailed
)
from ...data.conversations import Transcript
from ..hardware.backend import AudioDevice, InputStream
from ..hardware.registry import DeviceRegistry
from ..speech.stt import RecognitionError, RecognitionErrorCode, SpeechRecognizer

logger = logging.getLogger("capture_session")


class CaptureState(str, Enum):
    """Lifecycle of a capture session."""
    IDLE = "idle"
    ACQUIRING_DEVICE = "acquiring_device"
    LISTENING = "listening"
    ERRORING = "erroring"


class CaptureErrorKind(str, Enum):
    """How a recognition error is handled."""
    NO_SPEECH = "no_speech"
    PERMISSION_DENIED = "permission_denied"
    DEVICE_MISSING = "device_missing"
    OTHER = "other"


def classify_error(code: RecognitionErrorCode) -> CaptureErrorKind:
    """Map a platform recognition error code onto the capture error kinds."""
    if code == RecognitionErrorCode.NO_SPEECH:
        return CaptureErrorKind.NO_SPEECH
    if code == RecognitionErrorCode.NOT_ALLOWED:
        return CaptureErrorKind.PERMISSION_DENIED
    if code == RecognitionErrorCode.AUDIO_CAPTURE:
        return CaptureErrorKind.DEVICE_MISSING
    return CaptureErrorKind.OTHER


StateListener = Callable[[CaptureState], None]


class CaptureSession:
    """
    Owns speech recognition attempts on one microphone.

    `start()` runs Idle -> AcquiringDevice -> Listening and returns the
    transcript of one utterance. "No speech" restarts automatically up to
    `max_auto_restarts` times; every other error surfaces at once. Each
    attempt holds exactly one input stream, closed before the next opens.
    Only one session in the process may be listening at a time.
    """

    _active_lock = threading.Lock()
    _active_session: Optional["CaptureSession"] = None

    def __init__(self,
                 registry: DeviceRegistry,
                 recognizer: SpeechRecognizer,
                 max_auto_restarts: int = MAX_AUTO_RESTARTS,
                 restart_delay: float = RESTART_DELAY,
                 sleep: Callable[[float], None] = time.sleep,
                 on_state_change: Optional[StateListener] = None):
        self.registry = registry
        self.recognizer = recognizer
        self.max_auto_restarts = max_auto_restarts
        self.restart_delay = restart_delay
        self._sleep = sleep
        self._on_state_change = on_state_change

        self.state = CaptureState.IDLE
        self.retry_count = 0
        self.last_error: Optional[CaptureErrorKind] = None
        self._stream: Optional[InputStream] = None
        self._stream_lock = threading.Lock()
        self._state_lock = threading.RLock()
        self._stop_requested = threading.Event()

    @property
    def open_streams(self) -> int:
        return 1 if self._stream is not None else 0

    def _set_state(self, state: CaptureState) -> None:
        if state == self.state:
            return
        logger.debug(f"Capture state {self.state.value} -> {state.value}")
        self.state = state
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception as e:
                logger.error(f"Error in capture state listener: {e}")

    # ------------------------------------------------------------------
    # Single-listener guard
    # ------------------------------------------------------------------

    def _claim_listening(self) -> None:
        with CaptureSession._active_lock:
            active = CaptureSession._active_session
            if active is not None and active is not self:
                raise CaptureBusy("Another capture session is already listening")
            CaptureSession._active_session = self

    def _release_listening(self) -> None:
        with CaptureSession._active_lock:
            if CaptureSession._active_session is self:
                CaptureSession._active_session = None

    # ------------------------------------------------------------------
    # Stream ownership
    # ------------------------------------------------------------------

    def _open_stream(self, device: AudioDevice) -> InputStream:
        self._release_stream()
        try:
            stream = self.registry.backend.open_input_stream(device.id, self.registry.constraints)
        except PermissionError as e:
            raise RecognitionError(RecognitionErrorCode.NOT_ALLOWED, f"Microphone access denied: {e}")
        except OSError as e:
            raise RecognitionError(RecognitionErrorCode.AUDIO_CAPTURE, f"Cannot open microphone: {e}")

        with self._stream_lock:
            self._stream = stream
        return stream

    def _release_stream(self) -> None:
        with self._stream_lock:
            stream, self._stream = self._stream, None
        if stream is not None:
            try:
                stream.close()
            except OSError as e:
                logger.warning(f"Error closing input stream: {e}")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self) -> Optional[Transcript]:
        """
        Listen for one utterance.

        Returns:
            The transcript, or None if the session was stopped or ended
            without a result after exhausting restarts

        Raises:
            DeviceUnavailable: No microphone verifies, or the device vanished
            PermissionDenied: Microphone access was refused
            NoSpeechDetected: Nothing was heard after all automatic restarts
            RecognitionFailed: Network or other recognition failure
            CaptureBusy: This or another session is already running
        """
        # serialised with stop(): a stop after this point is never cleared
        with self._state_lock:
            if self.state != CaptureState.IDLE:
                raise CaptureBusy("Capture session already running")
            self._stop_requested.clear()
            self.retry_count = 0
            self.last_error = None
            self._set_state(CaptureState.ACQUIRING_DEVICE)

        try:
            device = self.registry.selected or self.registry.select_best()
            if device is None:
                raise DeviceUnavailable("No working microphone found")
            self._claim_listening()
        except Exception:
            self._set_state(CaptureState.IDLE)
            raise

        try:
            return self._listen(device)
        finally:
            self._release_stream()
            self._release_listening()
            self._set_state(CaptureState.IDLE)

    def _listen(self, device: AudioDevice) -> Optional[Transcript]:
        while True:
            if self._stop_requested.is_set():
                return None

            self._set_state(CaptureState.LISTENING)
            logger.info(f"Listening on {device.display_name} (restart {self.retry_count}/{self.max_auto_restarts})")
            try:
                stream = self._open_stream(device)
                transcript = self.recognizer.recognize(stream, self._stop_requested.is_set)
            except RecognitionError as e:
                if self._stop_requested.is_set():
                    return None
                self._handle_error(e)
                self._sleep(self.restart_delay)
                continue
            finally:
                self._release_stream()

            if transcript is not None:
                self.retry_count = 0
                logger.info(f"Transcript: {transcript.text!r}")
                return transcript

            if self._stop_requested.is_set():
                return None
            if self.retry_count < self.max_auto_restarts:
                self.retry_count += 1
                logger.info("Recognition ended without a result, restarting")
                continue

            logger.info("Recognition ended without a result, giving up")
            self.retry_count = 0
            return None

    def _handle_error(self, error: RecognitionError) -> None:
        """Decide whether a failed attempt restarts; raises when it does not."""
        self._set_state(CaptureState.ERRORING)
        kind = classify_error(error.code)
        self.last_error = kind
        logger.warning(f"Recognition error ({error.code.value}): {error}")

        if kind == CaptureErrorKind.NO_SPEECH:
            if self.retry_count < self.max_auto_restarts:
                self.retry_count += 1
                logger.info(f"No speech, automatic restart {self.retry_count}/{self.max_auto_restarts}")
                return
            attempts = self.retry_count + 1
            self.retry_count = 0
            raise NoSpeechDetected(f"No speech detected after {attempts} attempts", attempts=attempts)

        self.retry_count = 0
        if kind == CaptureErrorKind.PERMISSION_DENIED:
            raise PermissionDenied(str(error))
        if kind == CaptureErrorKind.DEVICE_MISSING:
            self.registry.clear_selection()
            raise DeviceUnavailable(str(error))
        raise RecognitionFailed(str(error), code=error.code.value)

    def stop(self) -> None:
        """Cancel any in-flight recognition and release the stream. Idempotent."""
        with self._state_lock:
            if self.state != CaptureState.IDLE:
                logger.info("Stopping capture session")
            self._stop_requested.set()
        self._release_stream()
