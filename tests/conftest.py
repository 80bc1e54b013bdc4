"""Pytest configuration and fixtures for vadrecorder tests."""

import pytest
import tempfile
import time
import logging
import uuid
from pathlib import Path
from typing import Callable, Optional
from unittest.mock import Mock, patch
import numpy as np

from vadrecorder.audio.backend import CaptureBackend
from vadrecorder.audio.publisher import SessionEventPublisher
from vadrecorder.engine.recorder import VoiceActivityRecorder
from vadrecorder.engine.scheduler import ManualClock
from vadrecorder.exceptions import CaptureError
from vadrecorder.models.result import CaptureInfo
from vadrecorder.models.session import SessionConfig
from vadrecorder.services.recording_service import DEFAULT_SESSION_CONFIG


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

VOICE_DB = -20.0
SILENCE_DB = -70.0


def pytest_addoption(parser):
    parser.addoption("--run-hardware", action="store_true", default=False,
                     help="Run tests that need a real microphone")


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")
    config.addinivalue_line("markers", "slow: tests that wait on real time")
    config.addinivalue_line("markers", "hardware: tests that need a real microphone")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-hardware"):
        return
    skip_hardware = pytest.mark.skip(reason="needs --run-hardware")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


def speech(*intervals):
    """Level function that reports voice inside the given (start, end) intervals."""
    def level_at(t: float) -> float:
        for start, end in intervals:
            if start <= t <= end:
                return VOICE_DB
        return SILENCE_DB
    return level_at


class FakeCaptureBackend(CaptureBackend):
    """Scripted capture backend whose level is a function of clock time.

    Writes a small placeholder file on start so that stop and discard act on
    a real output file.
    """

    def __init__(self, clock, output_dir: str, level_at: Optional[Callable[[float], float]] = None):
        self.clock = clock
        self.output_dir = Path(output_dir)
        self.level_at = level_at or (lambda t: SILENCE_DB)
        self.permission = True
        self.grant_on_request = True

        self.start_error: Optional[str] = None
        self.stop_error: Optional[str] = None
        self.fail_after: Optional[float] = None

        self.capturing = False
        self.start_calls = 0
        self.stop_calls = 0
        self.discard_calls = 0
        self.poll_calls = 0
        self.file_path: Optional[str] = None
        self.last_config: Optional[SessionConfig] = None

    def has_permission(self) -> bool:
        return self.permission

    def request_permission(self) -> bool:
        self.permission = self.grant_on_request
        return self.permission

    def start_capture(self, config: SessionConfig) -> None:
        self.start_calls += 1
        self.last_config = config
        if self.start_error:
            raise CaptureError(self.start_error)
        self.file_path = str(self.output_dir / f"recording_{self.start_calls}.{config.format}")
        Path(self.file_path).write_bytes(b"\x00" * 4096)
        self.capturing = True

    def poll_level(self) -> float:
        self.poll_calls += 1
        now = self.clock.now()
        if self.fail_after is not None and now >= self.fail_after:
            raise CaptureError("Input device disconnected")
        return self.level_at(now)

    def stop_capture(self) -> CaptureInfo:
        self.stop_calls += 1
        self.capturing = False
        if self.stop_error:
            raise CaptureError(self.stop_error)
        return CaptureInfo(self.file_path, Path(self.file_path).stat().st_size)

    def discard_capture(self) -> None:
        self.discard_calls += 1
        self.capturing = False
        if self.file_path and Path(self.file_path).exists():
            Path(self.file_path).unlink()


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def fake_backend(manual_clock, temp_data_dir):
    return FakeCaptureBackend(manual_clock, temp_data_dir)


@pytest.fixture
def recorder(fake_backend, manual_clock):
    return VoiceActivityRecorder(fake_backend, clock=manual_clock, poll_interval=0.1)


@pytest.fixture
def make_config():
    """Factory for complete session configs built on the default settings."""
    def factory(**overrides) -> SessionConfig:
        values = dict(DEFAULT_SESSION_CONFIG)
        values.update(overrides)
        return SessionConfig.from_dict(values)
    return factory


@pytest.fixture
def event_topic():
    """Unique pub/sub topic per test."""
    return f"test_session_{uuid.uuid4().hex}"


@pytest.fixture
def publisher(event_topic):
    return SessionEventPublisher(event_topic)


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def mock_pyaudio(sample_audio_chunk):
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        def read(num_frames, exception_on_overflow=True):
            time.sleep(0.005)
            return sample_audio_chunk

        # Configure mock stream
        mock_stream.read.side_effect = read
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None
        mock_pyaudio_instance.get_sample_size.return_value = 2

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
