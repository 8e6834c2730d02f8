"""
Audio input, speech services and playback for CineVoice.

Submodules:
- hardware: device enumeration, ranking and verification
- processing: signal processing and the speech capture session
- speech: speech-to-text, text-to-speech and playback
"""

# processing loads before hardware: the capture session imports the hardware layer
from .processing import CaptureSession, CaptureState, CaptureErrorKind
from .hardware import AudioBackend, AudioDevice, CaptureConstraints, DeviceRegistry, PyAudioBackend
from .speech import (
    AudioHandle, GoogleSpeechRecognizer, GoogleSpeechTransport, PyAudioPlayer,
    RestSpeechTransport, SynthesisClient, VoiceSettings
)

__all__ = [
    "CaptureSession", "CaptureState", "CaptureErrorKind",
    "AudioBackend", "AudioDevice", "CaptureConstraints", "DeviceRegistry", "PyAudioBackend",
    "AudioHandle", "GoogleSpeechRecognizer", "GoogleSpeechTransport", "PyAudioPlayer",
    "RestSpeechTransport", "SynthesisClient", "VoiceSettings"
]
