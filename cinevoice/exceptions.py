"""
Error hierarchy for the CineVoice assistant.

Hierarchy:
    CineVoiceError
    ├── DeviceUnavailable
    ├── CaptureError
    │   ├── PermissionDenied
    │   ├── NoSpeechDetected
    │   ├── RecognitionFailed
    │   └── CaptureBusy
    ├── SynthesisError
    │   ├── SynthesisTransportError
    │   └── SynthesisUnavailable
    ├── BackendError
    │   ├── ChatBackendUnavailable
    │   └── ContentApiError
    └── InputRejected
        ├── EmptyInput
        └── Offline
"""
from typing import Optional


class CineVoiceError(Exception):
    """Base class for all CineVoice exceptions."""


class DeviceUnavailable(CineVoiceError):
    """No audio input device could be enumerated, opened or verified."""


class CaptureError(CineVoiceError):
    """Base for speech capture failures."""


class PermissionDenied(CaptureError):
    """The platform refused access to the microphone."""


class NoSpeechDetected(CaptureError):
    """Recognition finished without hearing any speech."""

    def __init__(self, message: str = "No speech detected", attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class RecognitionFailed(CaptureError):
    """Recognition failed for a reason that is not worth retrying (network, other)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class CaptureBusy(CaptureError):
    """Another capture session is already listening."""


class SynthesisError(CineVoiceError):
    """Base for text-to-speech failures."""


class SynthesisTransportError(SynthesisError):
    """A single text-to-speech call failed (transport, HTTP status or corrupt payload)."""


class SynthesisUnavailable(SynthesisError):
    """Text-to-speech failed on every attempt; the caller continues without audio."""

    def __init__(self, message: str, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class BackendError(CineVoiceError):
    """Base for content and chat backend failures."""


class ChatBackendUnavailable(BackendError):
    """The generic chat backend could not be reached or answered badly."""


class ContentApiError(BackendError):
    """The movie/TV search API failed."""


class InputRejected(CineVoiceError):
    """A submitted message was refused before any side effect."""


class EmptyInput(InputRejected):
    """The submitted message was empty or whitespace."""


class Offline(InputRejected):
    """The transport is offline; nothing was sent."""
