"""
Testing infrastructure with fakes and mocks for the voice assistant.

Nothing here touches real audio hardware, speech services or HTTP.
"""
import struct
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np

from ..exceptions import ChatBackendUnavailable, ContentApiError, SynthesisTransportError
from ..infrastructure.api import ChatBackendClient, ChatMessage, ContentApiClient, ContentItem
from ..infrastructure.audio.hardware import AudioBackend, AudioDevice, CaptureConstraints, InputStream, INPUT
from ..infrastructure.audio.processing import encode_wav
from ..infrastructure.audio.speech import (
    AudioHandle, Playback, RecognitionError, RecognitionErrorCode, SpeechRecognizer,
    SpeechTransport, SynthesisClient, VoiceSettings
)
from ..infrastructure.avatar import LipSyncScheduler, RenderTarget
from ..infrastructure.data import Transcript
from .controller import ConversationController
from .events import AssistantEventBus, AssistantEvent


class FakeClock:
    """Manual clock; `sleep` advances time instead of blocking."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ----------------------------------------------------------------------
# Audio input
# ----------------------------------------------------------------------

class FakeInputStream(InputStream):
    """Returns a constant-amplitude tone and reports its close to the backend."""

    def __init__(self, backend: "FakeAudioBackend", device_id: str, amplitude: float,
                 sample_rate: int = 16000, fail_reads: bool = False):
        self.backend = backend
        self.device_id = device_id
        self.amplitude = amplitude
        self.sample_rate = sample_rate
        self.fail_reads = fail_reads
        self.closed = False

    def read(self, frames: int) -> np.ndarray:
        if self.closed:
            raise OSError("Stream is closed")
        if self.fail_reads:
            raise OSError("Device disconnected")
        t = np.arange(frames, dtype=np.float32) / self.sample_rate
        return (self.amplitude * np.sin(2 * np.pi * 440.0 * t)).astype(np.float32)

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.backend.open_streams -= 1


class FakeAudioBackend(AudioBackend):
    """
    In-memory device list with open-stream accounting.

    Args:
        devices: Devices to report
        levels: Tone amplitude per device id (missing ids are silent)
        enumeration_failures: Number of enumerate calls that raise OSError first
        denied: Device ids whose open raises PermissionError
        broken: Device ids whose open raises OSError
        failing_reads: Device ids whose streams raise on read
    """

    def __init__(self,
                 devices: Sequence[AudioDevice],
                 levels: Optional[Dict[str, float]] = None,
                 enumeration_failures: int = 0,
                 denied: Iterable[str] = (),
                 broken: Iterable[str] = (),
                 failing_reads: Iterable[str] = ()):
        self.devices = list(devices)
        self.levels = dict(levels or {})
        self.enumeration_failures = enumeration_failures
        self.denied = set(denied)
        self.broken = set(broken)
        self.failing_reads = set(failing_reads)

        self.enumerate_calls = 0
        self.open_streams = 0
        self.opened: List[str] = []

    def enumerate_devices(self) -> List[AudioDevice]:
        self.enumerate_calls += 1
        if self.enumeration_failures > 0:
            self.enumeration_failures -= 1
            raise OSError("Audio subsystem busy")
        return list(self.devices)

    def open_input_stream(self, device_id: str, constraints: CaptureConstraints) -> InputStream:
        if device_id in self.denied:
            raise PermissionError("Permission denied")
        if device_id in self.broken or device_id not in {d.id for d in self.devices}:
            raise OSError(f"Cannot open device {device_id}")
        self.opened.append(device_id)
        self.open_streams += 1
        return FakeInputStream(self, device_id, self.levels.get(device_id, 0.0),
                               fail_reads=device_id in self.failing_reads)


def make_device(device_id: str, label: str = "", kind: str = INPUT, is_default: bool = False) -> AudioDevice:
    return AudioDevice(id=device_id, label=label, kind=kind, is_default=is_default)


ScriptStep = Union[str, RecognitionError, None]


class ScriptedRecognizer(SpeechRecognizer):
    """
    Plays back a script: a string yields a Transcript, a RecognitionError is
    raised, None ends the attempt without a result. Each call reads once from
    the stream so stream ownership is exercised.
    """

    def __init__(self, script: Sequence[ScriptStep]):
        self.script = list(script)
        self.calls = 0
        self.streams: List[InputStream] = []

    def recognize(self, stream: InputStream, should_stop) -> Optional[Transcript]:
        self.calls += 1
        self.streams.append(stream)
        try:
            stream.read(160)
        except OSError as e:
            raise RecognitionError(RecognitionErrorCode.AUDIO_CAPTURE, f"Audio read failed: {e}")
        if not self.script:
            raise RecognitionError(RecognitionErrorCode.NO_SPEECH, "Script exhausted")
        step = self.script.pop(0)
        if isinstance(step, RecognitionError):
            raise step
        if step is None:
            return None
        return Transcript(text=step, confidence=0.9)


# ----------------------------------------------------------------------
# Speech output
# ----------------------------------------------------------------------

def make_wav(duration: float = 0.5, sample_rate: int = 16000) -> bytes:
    """Silent mono 16-bit WAV payload."""
    return encode_wav(np.zeros(int(duration * sample_rate), dtype=np.int16), sample_rate)


def make_wav_with_header(sample_rate: int, channels: int = 1, sample_width: int = 2,
                          data: bytes = b"\x00" * 200) -> bytes:
    """WAV bytes written field by field, so the header may describe an impossible format."""
    fmt = struct.pack("<HHIIHH", 1, channels, sample_rate, sample_rate * channels * sample_width,
                      channels * sample_width, sample_width * 8)
    body = (b"WAVE" + b"fmt " + struct.pack("<I", len(fmt)) + fmt
            + b"data" + struct.pack("<I", len(data)) + data)
    return b"RIFF" + struct.pack("<I", len(body)) + body


def make_audio(duration: float = 0.5, sample_rate: int = 16000) -> AudioHandle:
    return AudioHandle.from_payload(make_wav(duration, sample_rate), sample_rate)


class MockSpeechTransport(SpeechTransport):
    """Returns WAV payloads, or fails the first `failures` calls (all calls if None)."""

    def __init__(self, failures: Optional[int] = 0, duration: float = 0.5, payload: Optional[bytes] = None):
        self.failures = failures
        self.duration = duration
        self.payload = payload
        self.calls: List[str] = []

    def fetch(self, text: str, voice: VoiceSettings) -> bytes:
        self.calls.append(text)
        if self.failures is None or len(self.calls) <= self.failures:
            raise SynthesisTransportError("HTTP 503 from speech service")
        if self.payload is not None:
            return self.payload
        return make_wav(self.duration, voice.sample_rate)


class FakePlayback(Playback):
    """Playback driven by a FakeClock; position advances with the clock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.played: List[AudioHandle] = []
        self._audio: Optional[AudioHandle] = None
        self._started = 0.0
        self._stopped = False

    def play(self, audio: AudioHandle) -> None:
        self.played.append(audio)
        self._audio = audio
        self._started = self.clock()
        self._stopped = False

    def stop(self) -> None:
        self._stopped = True

    @property
    def position(self) -> float:
        if self._audio is None:
            return 0.0
        return min(self.clock() - self._started, self._audio.duration)

    @property
    def duration(self) -> float:
        return self._audio.duration if self._audio is not None else 0.0

    @property
    def is_playing(self) -> bool:
        return self._audio is not None and not self._stopped and self.position < self._audio.duration


class RecordingRenderTarget(RenderTarget):
    """Remembers every viseme written to it."""

    def __init__(self):
        self.applied: List[str] = []

    def apply_viseme(self, viseme: str) -> None:
        self.applied.append(viseme)


# ----------------------------------------------------------------------
# Backend clients
# ----------------------------------------------------------------------

class MockContentClient(ContentApiClient):
    """Search results from dictionaries keyed by lower-case term."""

    def __init__(self,
                 movies: Optional[Dict[str, List[dict]]] = None,
                 shows: Optional[Dict[str, List[dict]]] = None,
                 online: bool = True,
                 fail: bool = False):
        # Don't call super().__init__ to avoid creating a requests session
        self.movies = movies or {}
        self.shows = shows or {}
        self.online = online
        self.fail = fail
        self.searches: List[tuple] = []

    def _search(self, media_type: str, term: str) -> List[ContentItem]:
        self.searches.append((media_type, term))
        if self.fail:
            raise ContentApiError("Search API error 500")
        table = self.movies if media_type == "movie" else self.shows
        return [ContentItem(media_type=media_type, **item) for item in table.get(term.lower(), [])]

    def ping(self) -> bool:
        return self.online


class MockChatClient(ChatBackendClient):
    """Returns canned replies, or raises ChatBackendUnavailable when `fail` is set."""

    def __init__(self, replies: Optional[List[Union[str, dict]]] = None, fail: bool = False):
        self.replies = replies if replies is not None else ["I'm here to help with movies."]
        self.fail = fail
        self.sent: List[str] = []

    def send(self, message: str) -> List[ChatMessage]:
        self.sent.append(message)
        if self.fail:
            raise ChatBackendUnavailable("Chat request failed: connection refused")
        return [ChatMessage.model_validate(r if isinstance(r, dict) else {"text": r}) for r in self.replies]


class RecordingSubscriber:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: AssistantEventBus):
        self.events: List[AssistantEvent] = []
        bus.subscribe_all(self.events.append)

    def of_type(self, event_type) -> List[AssistantEvent]:
        return [e for e in self.events if e.event_type == event_type]


def create_mock_controller(content: Optional[MockContentClient] = None,
                           chat: Optional[MockChatClient] = None,
                           transport: Optional[SpeechTransport] = None,
                           clock: Optional[FakeClock] = None) -> ConversationController:
    """Controller wired to mocks; synthesis is enabled only when a transport is given."""
    clock = clock or FakeClock()
    content = content or MockContentClient()
    synthesis = SynthesisClient(transport, sleep=clock.sleep) if transport is not None else None
    return ConversationController(
        content,
        chat or MockChatClient(),
        synthesis=synthesis,
        lipsync=LipSyncScheduler(clock=clock, sleep=clock.sleep),
        is_online=content.ping,
        clock=clock,
    )
