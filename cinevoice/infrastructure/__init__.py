"""Infrastructure components for CineVoice.

Low-level building blocks used by the conversation layer: audio devices and
speech, backend API clients, the avatar face and conversation data.
"""

# Audio infrastructure
from .audio import (
    CaptureSession, DeviceRegistry, PyAudioBackend, PyAudioPlayer,
    GoogleSpeechRecognizer, SynthesisClient
)

# Backend clients
from .api import ChatBackendClient, ContentApiClient

# Avatar
from .avatar import LipSyncScheduler, MorphTargetRig

__all__ = [
    # Audio
    "CaptureSession", "DeviceRegistry", "PyAudioBackend", "PyAudioPlayer",
    "GoogleSpeechRecognizer", "SynthesisClient",

    # Backend clients
    "ChatBackendClient", "ContentApiClient",

    # Avatar
    "LipSyncScheduler", "MorphTargetRig"
]
