"""
Text-to-speech functionality: remote synthesis transports and a retrying client.
"""
import time
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

import requests
from google.api_core import exceptions as google_exceptions
from google.cloud import texttospeech

from ....config import (
    GOOGLE_TTS_VOICE, HTTP_TIMEOUT, LANGUAGE_CODE, SYNTHESIS_MAX_ATTEMPTS,
    SYNTHESIS_RETRY_DELAY, SYNTHESIS_SAMPLE_RATE, TTS_MODEL_ID, TTS_SIMILARITY_BOOST,
    TTS_SPEAKING_RATE, TTS_STABILITY, TTS_URL, TTS_VOICE_ID
)
from ....exceptions import SynthesisTransportError, SynthesisUnavailable
from ..processing.processing import decode_wav
from .credentials import load_credentials

logger = logging.getLogger("speech_tts")


@dataclass(frozen=True)
class AudioHandle:
    """A fully decoded PCM utterance ready for playback."""
    pcm: bytes
    sample_rate: int
    channels: int = 1
    sample_width: int = 2

    def __post_init__(self):
        if self.sample_rate <= 0 or self.channels <= 0 or self.sample_width <= 0:
            raise ValueError(f"Invalid audio format: {self.sample_rate} Hz, {self.channels} channel(s), "
                             f"{self.sample_width}-byte samples")

    @property
    def frame_count(self) -> int:
        return len(self.pcm) // (self.channels * self.sample_width)

    @property
    def duration(self) -> float:
        """Length of the audio in seconds."""
        return self.frame_count / float(self.sample_rate)

    @classmethod
    def from_payload(cls, payload: bytes, default_sample_rate: int = SYNTHESIS_SAMPLE_RATE) -> "AudioHandle":
        """
        Build a handle from a WAV file or raw little-endian PCM16 mono.

        Raises:
            ValueError: Empty, truncated or otherwise corrupt payloads
        """
        if not payload:
            raise ValueError("Empty audio payload")
        if payload[:4] == b"RIFF":
            frames, sample_rate, channels, sample_width = decode_wav(payload)
            return cls(frames, sample_rate, channels, sample_width)
        if len(payload) % 2:
            raise ValueError(f"Raw PCM16 payload has odd length {len(payload)}")
        return cls(payload, default_sample_rate)


@dataclass(frozen=True)
class VoiceSettings:
    """Voice parameters sent with every synthesis request."""
    voice_id: str = TTS_VOICE_ID
    model_id: str = TTS_MODEL_ID
    stability: float = TTS_STABILITY
    similarity_boost: float = TTS_SIMILARITY_BOOST
    speaking_rate: float = TTS_SPEAKING_RATE
    language_code: str = LANGUAGE_CODE
    google_voice: str = GOOGLE_TTS_VOICE
    sample_rate: int = SYNTHESIS_SAMPLE_RATE


@dataclass
class SynthesisResult:
    """Outcome of `SynthesisClient.synthesize`: audio, or the reason there is none."""
    audio: Optional[AudioHandle] = None
    error: Optional[SynthesisUnavailable] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.audio is not None


class SpeechTransport(ABC):
    """One remote text-to-speech call."""

    @abstractmethod
    def fetch(self, text: str, voice: VoiceSettings) -> bytes:
        """
        Return the synthesized audio payload.

        Raises:
            SynthesisTransportError: On any transport or HTTP failure
        """


class RestSpeechTransport(SpeechTransport):
    """POSTs text and voice parameters to a REST text-to-speech endpoint."""

    def __init__(self, base_url: str = TTS_URL, api_key: Optional[str] = None,
                 timeout: float = HTTP_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, text: str, voice: VoiceSettings) -> bytes:
        url = f"{self.base_url}/{voice.voice_id}"
        headers = {
            "Accept": "audio/wav",
            "Content-Type": "application/json",
        }
        if self.api_key:
            headers["xi-api-key"] = self.api_key

        body = {
            "text": text,
            "model_id": voice.model_id,
            "voice_settings": {
                "stability": float(voice.stability),
                "similarity_boost": float(voice.similarity_boost),
            },
        }

        try:
            resp = self.session.post(url, headers=headers, json=body,
                                     params={"output_format": f"pcm_{voice.sample_rate}"},
                                     timeout=self.timeout)
        except requests.RequestException as e:
            raise SynthesisTransportError(f"TTS request failed: {e}")

        if resp.status_code >= 400:
            raise SynthesisTransportError(f"TTS REST error {resp.status_code}: {resp.text[:200]}")
        return resp.content


class GoogleSpeechTransport(SpeechTransport):
    """Google Cloud Text-to-Speech returning LINEAR16 WAV."""

    def __init__(self, credentials_json: Optional[str] = None, client=None):
        self.credentials_json = credentials_json
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = texttospeech.TextToSpeechClient(credentials=load_credentials(self.credentials_json))
        return self._client

    def fetch(self, text: str, voice: VoiceSettings) -> bytes:
        synthesis_input = texttospeech.SynthesisInput(text=text)
        voice_params = texttospeech.VoiceSelectionParams(
            language_code=voice.language_code,
            name=voice.google_voice,
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=voice.sample_rate,
            speaking_rate=voice.speaking_rate,
        )

        try:
            response = self.client.synthesize_speech(
                input=synthesis_input, voice=voice_params, audio_config=audio_config
            )
        except (google_exceptions.GoogleAPICallError, google_exceptions.RetryError) as e:
            raise SynthesisTransportError(f"Google TTS failed: {e}")
        return response.audio_content


class SynthesisClient:
    """
    Converts response text to audio with bounded retries.

    Never raises for transport problems: after `max_attempts` failed calls the
    result carries a SynthesisUnavailable error and the conversation goes on
    without audio. Waiting is bounded by (max_attempts - 1) * retry_delay.
    """

    def __init__(self,
                 transport: SpeechTransport,
                 voice: Optional[VoiceSettings] = None,
                 max_attempts: int = SYNTHESIS_MAX_ATTEMPTS,
                 retry_delay: float = SYNTHESIS_RETRY_DELAY,
                 sleep: Callable[[float], None] = time.sleep):
        self.transport = transport
        self.voice = voice or VoiceSettings()
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    def synthesize(self, text: str) -> SynthesisResult:
        if not text or not text.strip():
            return SynthesisResult(error=SynthesisUnavailable("Nothing to synthesize"))

        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            if attempt > 0:
                logger.info(f"Retrying synthesis {attempt + 1}/{self.max_attempts}")
                self._sleep(self.retry_delay)
            try:
                payload = self.transport.fetch(text, self.voice)
                audio = AudioHandle.from_payload(payload, self.voice.sample_rate)
                logger.info(f"Synthesized {audio.duration:.2f}s of audio for {len(text)} chars")
                return SynthesisResult(audio=audio, attempts=attempt + 1)
            except (SynthesisTransportError, ValueError) as e:
                last_error = e
                logger.warning(f"Synthesis attempt {attempt + 1} failed: {e}")

        logger.error(f"Speech synthesis unavailable after {self.max_attempts} attempts: {last_error}")
        return SynthesisResult(
            error=SynthesisUnavailable(f"Speech synthesis failed: {last_error}", attempts=self.max_attempts),
            attempts=self.max_attempts,
        )
