"""
Speech-to-text functionality using Google Cloud Speech.

One call to `recognize` is one single-utterance request: it listens on an
open stream until the speaker stops (energy-based voice activity detection),
then sends the utterance for recognition. Failures carry the platform error
taxonomy so the capture session can decide whether to retry.
"""
import time
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, List, Optional

import numpy as np
from google.api_core import exceptions as google_exceptions
from google.cloud import speech

from ....config import (
    LANGUAGE_CODE, LISTEN_TIMEOUT_SECONDS, MAX_UTTERANCE_SECONDS, SAMPLE_RATE_TARGET,
    TARGET_RMS, VAD_MIN_SPEECH_DURATION, VAD_SILENCE_DURATION, VAD_SILENCE_THRESHOLD
)
from ...data.conversations import Transcript
from ..hardware.backend import InputStream
from ..processing.processing import (
    float_to_pcm16, normalize_audio, remove_dc, resample, rms_level, stereo_to_mono
)
from .credentials import load_credentials

logger = logging.getLogger("speech_stt")

CHECK_INTERVAL = 0.1

ShouldStop = Callable[[], bool]


class RecognitionErrorCode(str, Enum):
    """Named recognition errors reported by the platform."""
    NO_SPEECH = "no-speech"
    NOT_ALLOWED = "not-allowed"
    AUDIO_CAPTURE = "audio-capture"
    NETWORK = "network"
    OTHER = "other"


class RecognitionError(Exception):
    """A recognition attempt ended with a named platform error."""

    def __init__(self, code: RecognitionErrorCode, message: str = ""):
        super().__init__(message or code.value)
        self.code = code


class SpeechRecognizer(ABC):
    """Single-utterance recognition over an open input stream."""

    @abstractmethod
    def recognize(self, stream: InputStream, should_stop: ShouldStop) -> Optional[Transcript]:
        """
        Listen for one utterance and transcribe it.

        Returns:
            The transcript, or None if the session ended without a result
            (for example because `should_stop` became true)

        Raises:
            RecognitionError: With the platform error code
        """


class GoogleSpeechRecognizer(SpeechRecognizer):
    """Records one utterance with VAD and transcribes it with Google Cloud Speech."""

    TRANSIENT_ERRORS = (
        google_exceptions.ServiceUnavailable,
        google_exceptions.DeadlineExceeded,
        google_exceptions.RetryError,
    )

    def __init__(self,
                 language_code: str = LANGUAGE_CODE,
                 credentials_json: Optional[str] = None,
                 listen_timeout: float = LISTEN_TIMEOUT_SECONDS,
                 max_utterance: float = MAX_UTTERANCE_SECONDS,
                 silence_threshold: float = VAD_SILENCE_THRESHOLD,
                 silence_duration: float = VAD_SILENCE_DURATION,
                 min_speech_duration: float = VAD_MIN_SPEECH_DURATION,
                 sr_target: int = SAMPLE_RATE_TARGET,
                 target_rms: float = TARGET_RMS,
                 client=None,
                 clock: Callable[[], float] = time.monotonic):
        self.language_code = language_code
        self.credentials_json = credentials_json
        self.listen_timeout = listen_timeout
        self.max_utterance = max_utterance
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.min_speech_duration = min_speech_duration
        self.sr_target = sr_target
        self.target_rms = target_rms
        self._client = client
        self._clock = clock

    @property
    def client(self):
        if self._client is None:
            self._client = speech.SpeechClient(credentials=load_credentials(self.credentials_json))
        return self._client

    def recognize(self, stream: InputStream, should_stop: ShouldStop) -> Optional[Transcript]:
        utterance = self._record_utterance(stream, should_stop)
        if utterance is None:
            return None

        pcm16_bytes = self._prepare(utterance, stream.sample_rate)
        return self._transcribe(pcm16_bytes)

    def _record_utterance(self, stream: InputStream, should_stop: ShouldStop) -> Optional[np.ndarray]:
        """Read from the stream until the speaker stops talking."""
        chunk_frames = max(1, int(stream.sample_rate * CHECK_INTERVAL))
        chunks: List[np.ndarray] = []

        start_time = self._clock()
        speech_started = False
        speech_start_time = 0.0
        last_speech_time = start_time
        silence_start_time: Optional[float] = None

        while True:
            if should_stop():
                logger.info("Recognition cancelled")
                return None

            current_time = self._clock()
            if not speech_started and current_time - start_time > self.listen_timeout:
                raise RecognitionError(RecognitionErrorCode.NO_SPEECH,
                                       f"No speech within {self.listen_timeout:.1f}s")
            if current_time - start_time > self.max_utterance:
                logger.info(f"Utterance capped at {self.max_utterance:.1f}s")
                break

            try:
                samples = stereo_to_mono(stream.read(chunk_frames))
            except OSError as e:
                raise RecognitionError(RecognitionErrorCode.AUDIO_CAPTURE, f"Audio read failed: {e}")

            level = rms_level(samples)
            if level > self.silence_threshold:
                if not speech_started:
                    speech_started = True
                    speech_start_time = current_time
                    logger.debug(f"Speech detected (level: {level:.4f})")
                last_speech_time = current_time
                silence_start_time = None
                chunks.append(samples)
            elif speech_started:
                chunks.append(samples)
                if silence_start_time is None:
                    silence_start_time = current_time
                elif current_time - silence_start_time >= self.silence_duration:
                    if last_speech_time - speech_start_time >= self.min_speech_duration:
                        logger.debug(f"Speech ended after {last_speech_time - speech_start_time:.1f}s")
                        break
                    # Too short to be an utterance, keep listening
                    speech_started = False
                    silence_start_time = None
                    chunks = []

        if not chunks:
            raise RecognitionError(RecognitionErrorCode.NO_SPEECH, "No audio captured")
        return np.concatenate(chunks)

    def _prepare(self, mono: np.ndarray, sample_rate: int) -> bytes:
        mono = remove_dc(mono)
        y = resample(mono, sample_rate, self.sr_target)
        y = normalize_audio(y, self.target_rms)
        return float_to_pcm16(y).tobytes()

    def _transcribe(self, pcm16_bytes: bytes) -> Transcript:
        audio = speech.RecognitionAudio(content=pcm16_bytes)
        config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=self.sr_target,
            language_code=self.language_code,
            enable_automatic_punctuation=True,
            max_alternatives=1,
        )

        try:
            resp = self.client.recognize(config=config, audio=audio)
        except self.TRANSIENT_ERRORS as e:
            raise RecognitionError(RecognitionErrorCode.NETWORK, f"Speech service unreachable: {e}")
        except google_exceptions.GoogleAPICallError as e:
            raise RecognitionError(RecognitionErrorCode.OTHER, f"Speech recognition failed: {e}")

        alternatives = [r.alternatives[0] for r in resp.results if r.alternatives]
        text = " ".join(a.transcript for a in alternatives).strip()
        if not text:
            raise RecognitionError(RecognitionErrorCode.NO_SPEECH, "Recognizer returned no text")

        confidence = float(alternatives[0].confidence) if alternatives[0].confidence else None
        logger.info(f"Speech recognition result: {text}")
        return Transcript(text=text, confidence=confidence)
