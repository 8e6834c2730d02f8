"""
tests/test_config.py — configuration loading and validation

Covers:
  - Defaults validate when speech is disabled
  - Environment variables override defaults
  - Invalid provider, missing API key, bad numbers are rejected with ValueError
"""

import pytest

from cinevoice.config import CONTENT_API_URL, Config, get_config

ENV_VARS = [
    "CINEVOICE_API_URL", "CINEVOICE_CHAT_URL", "CINEVOICE_TTS_URL", "CINEVOICE_TTS_API_KEY",
    "CINEVOICE_TTS_PROVIDER", "CINEVOICE_VOICE_ID", "GOOGLE_APPLICATION_CREDENTIALS",
    "CINEVOICE_LOG_FILE", "CINEVOICE_LOG_LEVEL", "CINEVOICE_HTTP_TIMEOUT", "CINEVOICE_LISTEN_TIMEOUT",
    "CINEVOICE_LANGUAGE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestGetConfig:
    def test_defaults_without_tts(self):
        config = get_config(enable_tts=False)
        assert config.content_api_url == CONTENT_API_URL
        assert config.enable_tts is False
        assert config.tts_provider == "rest"

    def test_rest_tts_requires_api_key(self):
        with pytest.raises(ValueError, match="CINEVOICE_TTS_API_KEY"):
            get_config(enable_tts=True)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("CINEVOICE_API_URL", "http://api.example.com")
        monkeypatch.setenv("CINEVOICE_CHAT_URL", "http://chat.example.com")
        monkeypatch.setenv("CINEVOICE_TTS_API_KEY", "secret")
        monkeypatch.setenv("CINEVOICE_VOICE_ID", "voice-9")
        monkeypatch.setenv("CINEVOICE_LOG_LEVEL", "debug")
        monkeypatch.setenv("CINEVOICE_HTTP_TIMEOUT", "2.5")

        config = get_config(enable_tts=True)

        assert config.content_api_url == "http://api.example.com"
        assert config.chat_backend_url == "http://chat.example.com"
        assert config.tts_api_key == "secret"
        assert config.tts_voice_id == "voice-9"
        assert config.log_level == "DEBUG"
        assert config.http_timeout == 2.5

    def test_google_provider_needs_no_api_key(self, monkeypatch):
        monkeypatch.setenv("CINEVOICE_TTS_PROVIDER", "Google")
        config = get_config(enable_tts=True)
        assert config.tts_provider == "google"

    def test_unknown_provider(self, monkeypatch):
        monkeypatch.setenv("CINEVOICE_TTS_PROVIDER", "espeak")
        with pytest.raises(ValueError, match="Unknown TTS provider"):
            get_config(enable_tts=False)

    def test_non_numeric_timeout(self, monkeypatch):
        monkeypatch.setenv("CINEVOICE_HTTP_TIMEOUT", "soon")
        with pytest.raises(ValueError, match="CINEVOICE_HTTP_TIMEOUT"):
            get_config(enable_tts=False)


class TestValidate:
    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            Config(enable_tts=False, http_timeout=0).validate()

    def test_max_turns_at_least_one(self):
        with pytest.raises(ValueError):
            Config(enable_tts=False, max_turns=0).validate()

    def test_valid(self):
        Config(enable_tts=True, tts_api_key="k").validate()
