"""Shared fixtures for the CineVoice test suite."""

import pytest

from cinevoice.conversation.testing import FakeAudioBackend, FakeClock, make_device
from cinevoice.infrastructure.audio.hardware import DeviceRegistry
from cinevoice.infrastructure.audio.processing import CaptureSession


@pytest.fixture(autouse=True)
def _reset_active_capture():
    """No capture session may leak its listening claim into another test."""
    CaptureSession._active_session = None
    yield
    CaptureSession._active_session = None


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return FakeAudioBackend(
        [make_device("mic1", "USB Microphone", is_default=True)],
        levels={"mic1": 0.5},
    )


@pytest.fixture
def registry(backend, clock):
    return DeviceRegistry(backend, sleep=clock.sleep, clock=clock)
