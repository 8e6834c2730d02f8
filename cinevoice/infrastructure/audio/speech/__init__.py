"""Speech-to-text, text-to-speech and playback modules."""

from .stt import GoogleSpeechRecognizer, RecognitionError, RecognitionErrorCode, SpeechRecognizer
from .tts import (
    AudioHandle, GoogleSpeechTransport, RestSpeechTransport, SpeechTransport,
    SynthesisClient, SynthesisResult, VoiceSettings
)
from .playback import Playback, PyAudioPlayer

__all__ = [
    "GoogleSpeechRecognizer", "RecognitionError", "RecognitionErrorCode", "SpeechRecognizer",
    "AudioHandle", "GoogleSpeechTransport", "RestSpeechTransport", "SpeechTransport",
    "SynthesisClient", "SynthesisResult", "VoiceSettings",
    "Playback", "PyAudioPlayer"
]
