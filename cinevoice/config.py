"""
CineVoice Configuration System
==============================

This file contains ALL configuration for the CineVoice assistant.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional


# =============================================================================
# USER SETTINGS - Edit these to customize the assistant
# =============================================================================

# Backend endpoints
CONTENT_API_URL = "http://localhost:3000"
CHAT_BACKEND_URL = "http://localhost:3000"
HTTP_TIMEOUT = 10.0

# Speech synthesis
TTS_PROVIDER = "rest"  # "rest" or "google"
TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech"
TTS_API_KEY = None
TTS_VOICE_ID = "EXAVITQu4vr4xnSDxMaL"
TTS_MODEL_ID = "eleven_multilingual_v2"
TTS_STABILITY = 0.5
TTS_SIMILARITY_BOOST = 0.75
TTS_SPEAKING_RATE = 1.0  # Google TTS only, 0.25 to 4.0
GOOGLE_TTS_VOICE = "en-US-Neural2-F"
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON
ENABLE_TTS = True

# Speech recognition
LANGUAGE_CODE = "en-US"
LISTEN_TIMEOUT_SECONDS = 8.0
MAX_UTTERANCE_SECONDS = 30.0

# Conversation
MAX_TURNS = 20

# Logging
LOG_FILE = "./_cinevoice/cinevoice.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Audio capture
SAMPLE_RATE_CAPTURE = 16000
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_MS = 30
TARGET_RMS = 0.06

# Voice Activity Detection
VAD_SILENCE_THRESHOLD = 0.01
VAD_SILENCE_DURATION = 1.2
VAD_MIN_SPEECH_DURATION = 0.3

# Device enumeration and verification
ENUMERATION_ATTEMPTS = 3
ENUMERATION_RETRY_DELAY = 0.5
VERIFY_WINDOW_SECONDS = 1.5
VERIFY_RMS_THRESHOLD = 0.01
VERIFY_PEAK_THRESHOLD = 0.1
WIRELESS_LABEL_KEYWORDS = ("bluetooth", "wireless", "airpods", "headset", "buds", "bt")
DEFAULT_DEVICE_ID = "default"

# Capture session
MAX_AUTO_RESTARTS = 3
RESTART_DELAY = 0.3

# Speech synthesis
SYNTHESIS_MAX_ATTEMPTS = 3
SYNTHESIS_RETRY_DELAY = 1.0
SYNTHESIS_SAMPLE_RATE = 16000

# Lip sync
LIPSYNC_CHAR_DURATION = 0.06
LIPSYNC_HOLD_SECONDS = 0.05
LIPSYNC_FRAME_RATE = 60
SILENCE_VISEME = "viseme_sil"

# Playback
SPEAKER_BUFFER_SIZE = 1024


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    content_api_url: str = CONTENT_API_URL
    chat_backend_url: str = CHAT_BACKEND_URL
    http_timeout: float = HTTP_TIMEOUT
    tts_provider: str = TTS_PROVIDER
    tts_url: str = TTS_URL
    tts_api_key: Optional[str] = TTS_API_KEY
    tts_voice_id: str = TTS_VOICE_ID
    tts_model_id: str = TTS_MODEL_ID
    tts_stability: float = TTS_STABILITY
    tts_similarity_boost: float = TTS_SIMILARITY_BOOST
    tts_speaking_rate: float = TTS_SPEAKING_RATE
    google_tts_voice: str = GOOGLE_TTS_VOICE
    google_application_credentials: Optional[str] = GOOGLE_APPLICATION_CREDENTIALS
    enable_tts: bool = ENABLE_TTS
    language_code: str = LANGUAGE_CODE
    listen_timeout: float = LISTEN_TIMEOUT_SECONDS
    max_turns: int = MAX_TURNS
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    def validate(self) -> None:
        """Raise ValueError for settings the assistant cannot run with."""
        if self.tts_provider not in ("rest", "google"):
            raise ValueError(f"Unknown TTS provider '{self.tts_provider}' (use 'rest' or 'google')")
        if self.enable_tts and self.tts_provider == "rest" and not self.tts_api_key:
            raise ValueError("Please set CINEVOICE_TTS_API_KEY or use CINEVOICE_TTS_PROVIDER=google")
        if self.http_timeout <= 0:
            raise ValueError("HTTP timeout must be positive")
        if self.max_turns < 1:
            raise ValueError("max_turns must be at least 1")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def get_config(enable_tts: Optional[bool] = None) -> Config:
    """Load configuration from environment variables over the defaults above."""
    config = Config(
        enable_tts=ENABLE_TTS if enable_tts is None else enable_tts,
        content_api_url=os.getenv("CINEVOICE_API_URL") or CONTENT_API_URL,
        chat_backend_url=os.getenv("CINEVOICE_CHAT_URL") or CHAT_BACKEND_URL,
        http_timeout=_env_float("CINEVOICE_HTTP_TIMEOUT", HTTP_TIMEOUT),
        tts_provider=(os.getenv("CINEVOICE_TTS_PROVIDER") or TTS_PROVIDER).lower(),
        tts_url=os.getenv("CINEVOICE_TTS_URL") or TTS_URL,
        tts_api_key=os.getenv("CINEVOICE_TTS_API_KEY") or TTS_API_KEY,
        tts_voice_id=os.getenv("CINEVOICE_VOICE_ID") or TTS_VOICE_ID,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        language_code=os.getenv("CINEVOICE_LANGUAGE") or LANGUAGE_CODE,
        listen_timeout=_env_float("CINEVOICE_LISTEN_TIMEOUT", LISTEN_TIMEOUT_SECONDS),
        log_file=os.getenv("CINEVOICE_LOG_FILE") or LOG_FILE,
        log_level=(os.getenv("CINEVOICE_LOG_LEVEL") or LOG_LEVEL).upper(),
    )
    config.validate()
    return config
