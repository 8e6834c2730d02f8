"""
Audio input device registry: enumeration, live signal verification and ranking.
"""
import math
import time
import logging
from typing import Callable, List, Optional

from ....config import (
    DEFAULT_DEVICE_ID, ENUMERATION_ATTEMPTS, ENUMERATION_RETRY_DELAY,
    VERIFY_PEAK_THRESHOLD, VERIFY_RMS_THRESHOLD, VERIFY_WINDOW_SECONDS,
    WIRELESS_LABEL_KEYWORDS
)
from ....exceptions import DeviceUnavailable
from ..processing.processing import peak_level, stereo_to_mono
from .backend import INPUT, OUTPUT, AudioBackend, AudioDevice, CaptureConstraints

logger = logging.getLogger("device_registry")

VERIFY_CHUNK_SECONDS = 0.1

DevicesChangedCallback = Callable[[List[AudioDevice]], None]


class DeviceRegistry:
    """
    Keeps the current set of audio devices and picks a microphone that actually works.

    A device "works" when a short capture on it shows signal energy above a
    fixed threshold. Every verification opens and closes its own stream, so
    `open_streams` is back to zero whenever a registry call returns.
    """

    def __init__(self,
                 backend: AudioBackend,
                 constraints: Optional[CaptureConstraints] = None,
                 verify_window: float = VERIFY_WINDOW_SECONDS,
                 rms_threshold: float = VERIFY_RMS_THRESHOLD,
                 peak_threshold: float = VERIFY_PEAK_THRESHOLD,
                 enumeration_attempts: int = ENUMERATION_ATTEMPTS,
                 enumeration_delay: float = ENUMERATION_RETRY_DELAY,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.backend = backend
        self.constraints = constraints or CaptureConstraints()
        self.verify_window = verify_window
        self.rms_threshold = rms_threshold
        self.peak_threshold = peak_threshold
        self.enumeration_attempts = enumeration_attempts
        self.enumeration_delay = enumeration_delay
        self._sleep = sleep
        self._clock = clock

        self._devices: Optional[List[AudioDevice]] = None
        self.selected: Optional[AudioDevice] = None
        self.open_streams = 0
        self._change_callbacks: List[DevicesChangedCallback] = []
        self._no_device_callbacks: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def refresh(self) -> List[AudioDevice]:
        """Re-enumerate devices, retrying transient platform failures."""
        last_error: Optional[Exception] = None
        for attempt in range(self.enumeration_attempts):
            if attempt > 0:
                logger.info(f"Retrying device enumeration {attempt + 1}/{self.enumeration_attempts}")
                self._sleep(self.enumeration_delay)
            try:
                self._devices = list(self.backend.enumerate_devices())
                logger.info(f"Found {len(self.list_input_devices())} input device(s)")
                return list(self._devices)
            except OSError as e:
                last_error = e
                logger.warning(f"Device enumeration attempt {attempt + 1} failed: {e}")

        raise DeviceUnavailable(f"Failed to enumerate audio devices: {last_error}")

    def _all_devices(self) -> List[AudioDevice]:
        if self._devices is None:
            self.refresh()
        return list(self._devices or [])

    def list_input_devices(self) -> List[AudioDevice]:
        return [d for d in self._all_devices() if d.kind == INPUT]

    def list_output_devices(self) -> List[AudioDevice]:
        return [d for d in self._all_devices() if d.kind == OUTPUT]

    def on_devices_changed(self, callback: DevicesChangedCallback) -> None:
        self._change_callbacks.append(callback)

    def on_no_working_device(self, callback: Callable[[], None]) -> None:
        self._no_device_callbacks.append(callback)

    def handle_device_change(self) -> List[AudioDevice]:
        """Device topology notification: refresh and tell subscribers."""
        logger.info("Audio device topology changed, re-enumerating")
        self.refresh()
        return self._apply_device_change()

    def poll_changes(self) -> bool:
        """
        Re-enumerate and run the change notification if the inputs differ.

        PortAudio reports no topology events, so callers poll between captures.

        Returns:
            True if the set of input devices changed
        """
        before = self._input_signature()
        self.refresh()
        if self._input_signature() == before:
            return False
        logger.info("Audio input devices changed since last enumeration")
        self._apply_device_change()
        return True

    def _input_signature(self):
        return tuple((d.id, d.label) for d in self.list_input_devices())

    def _apply_device_change(self) -> List[AudioDevice]:
        inputs = self.list_input_devices()

        if self.selected and self.selected.id not in {d.id for d in inputs}:
            logger.warning(f"Selected microphone disappeared: {self.selected.display_name}")
            self.selected = None

        for callback in self._change_callbacks:
            try:
                callback(inputs)
            except Exception as e:
                logger.error(f"Error in device change callback: {e}")
        return inputs

    # ------------------------------------------------------------------
    # Verification and selection
    # ------------------------------------------------------------------

    def verify(self, device: AudioDevice) -> bool:
        """
        Open a short-lived stream on `device` and check for live signal.

        Returns True as soon as the running average RMS or the peak level
        crosses its threshold within the verification window. The stream is
        released on every exit path.
        """
        try:
            stream = self.backend.open_input_stream(device.id, self.constraints)
        except OSError as e:
            logger.warning(f"Cannot open {device.display_name}: {e}")
            return False

        self.open_streams += 1
        try:
            chunk_frames = max(1, int(stream.sample_rate * VERIFY_CHUNK_SECONDS))
            max_chunks = max(1, math.ceil(self.verify_window / VERIFY_CHUNK_SECONDS))
            deadline = self._clock() + self.verify_window

            sum_squares = 0.0
            sample_count = 0
            peak = 0.0
            for _ in range(max_chunks):
                if self._clock() > deadline:
                    break
                samples = stereo_to_mono(stream.read(chunk_frames))
                if samples.size == 0:
                    continue
                sum_squares += float((samples.astype("float64") ** 2).sum())
                sample_count += samples.size
                peak = max(peak, peak_level(samples))

                average_rms = math.sqrt(sum_squares / sample_count)
                if average_rms > self.rms_threshold or peak > self.peak_threshold:
                    logger.info(f"Verified {device.display_name} (rms={average_rms:.4f}, peak={peak:.4f})")
                    return True

            logger.info(f"No signal on {device.display_name} (peak={peak:.4f})")
            return False
        except OSError as e:
            logger.warning(f"Read failed on {device.display_name}: {e}")
            return False
        finally:
            stream.close()
            self.open_streams -= 1

    @staticmethod
    def _is_wireless(device: AudioDevice) -> bool:
        words = device.label.lower().replace("-", " ").replace("(", " ").replace(")", " ").split()
        label = device.label.lower()
        return any(keyword in words or (len(keyword) > 2 and keyword in label)
                   for keyword in WIRELESS_LABEL_KEYWORDS)

    def rank(self, devices: List[AudioDevice]) -> List[AudioDevice]:
        """Order candidates: wireless/bluetooth first, platform default next, then enumeration order."""
        def priority(indexed):
            position, device = indexed
            if self._is_wireless(device):
                return (0, position)
            if device.is_default or device.id == DEFAULT_DEVICE_ID:
                return (1, position)
            return (2, position)

        return [device for _, device in sorted(enumerate(devices), key=priority)]

    def select_best(self) -> Optional[AudioDevice]:
        """Verify candidates in priority order and select the first one that works."""
        candidates = self.rank(self.list_input_devices())
        for device in candidates:
            if self.verify(device):
                self.selected = device
                logger.info(f"Selected microphone: {device.display_name}")
                return device

        logger.error(f"No working microphone among {len(candidates)} candidate(s)")
        self.selected = None
        for callback in self._no_device_callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in no-device callback: {e}")
        return None

    def select(self, device_id: str) -> AudioDevice:
        """Manually select an enumerated input device without verification."""
        for device in self.list_input_devices():
            if device.id == device_id:
                self.selected = device
                logger.info(f"Manually selected microphone: {device.display_name}")
                return device
        raise DeviceUnavailable(f"Unknown input device: {device_id}")

    def clear_selection(self) -> None:
        self.selected = None
