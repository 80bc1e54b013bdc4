"""Unit tests for the AudioRecorder service."""

from concurrent.futures import Future
from unittest.mock import patch

import pytest

from conftest import speech
from vadrecorder.config import VadRecorderConfig
from vadrecorder.exceptions import (
    InvalidConfigError,
    PermissionDeniedError,
    RecordingInProgressError,
)
from vadrecorder.models.result import StopReason
from vadrecorder.services.recording_service import (
    DEFAULT_SESSION_CONFIG,
    HIGH_QUALITY_PRESET,
    VOICE_MESSAGE_PRESET,
    AudioRecorder,
)


@pytest.fixture
def service(recorder):
    return AudioRecorder(recorder)


@pytest.mark.unit
class TestAudioRecorder:
    """Test cases for AudioRecorder."""

    def test_build_config_uses_defaults(self, service):
        config = service.build_config()

        assert config.to_dict() == DEFAULT_SESSION_CONFIG

    def test_build_config_applies_overrides(self, recorder):
        service = AudioRecorder(recorder, defaults={'max_duration_seconds': 60.0})

        config = service.build_config(channels=2)

        assert config.max_duration_seconds == 60.0
        assert config.channels == 2
        assert config.sample_rate == 44100

    def test_build_config_rejects_unknown_option(self, service):
        with pytest.raises(InvalidConfigError):
            service.build_config(silence_timeout=3)

    def test_start_recording_returns_future(self, service, fake_backend, manual_clock):
        fake_backend.level_at = speech((0.2, 1.0))

        future = service.start_recording()

        assert isinstance(future, Future)
        assert service.is_recording() is True
        manual_clock.advance_to(3.5)
        assert future.result(timeout=0).reason is StopReason.SILENCE_DETECTED
        assert service.is_recording() is False

    def test_permission_requested_when_missing(self, service, fake_backend):
        fake_backend.permission = False

        service.start_recording()

        assert fake_backend.permission is True
        assert fake_backend.start_calls == 1

    def test_permission_refused(self, service, fake_backend):
        fake_backend.permission = False
        fake_backend.grant_on_request = False

        with pytest.raises(PermissionDeniedError):
            service.start_recording()

        assert fake_backend.start_calls == 0
        assert service.check_microphone_permission() is False

    def test_stop_and_cancel_forward(self, service, manual_clock):
        service.start_recording()
        manual_clock.advance_to(1.0)

        result = service.stop_recording()
        assert result.reason is StopReason.MANUAL_STOP

        future = service.start_recording()
        service.cancel_recording()
        assert future.cancelled()

    def test_record_while_active(self, service):
        service.start_recording()

        with pytest.raises(RecordingInProgressError) as exc_info:
            service.record()
        assert exc_info.value.code == "recording_in_progress"

    def test_record_waits_for_result(self, service, fake_backend, manual_clock):
        fake_backend.level_at = speech((0.2, 1.0))

        # A future that resolves on the virtual clock
        original_start = service.recorder.start

        def start_and_run(config):
            future = original_start(config)
            manual_clock.advance_to(10.0)
            return future

        with patch.object(service.recorder, 'start', side_effect=start_and_run):
            result = service.record(timeout=1)

        assert result.reason is StopReason.SILENCE_DETECTED

    def test_record_voice_message_uses_preset(self, service):
        with patch.object(service, 'record') as mock_record:
            service.record_voice_message(timeout=5)

        mock_record.assert_called_once_with(timeout=5, **VOICE_MESSAGE_PRESET)

    def test_record_high_quality_uses_preset(self, service):
        with patch.object(service, 'record') as mock_record:
            service.record_high_quality(max_duration_seconds=900.0)

        mock_record.assert_called_once_with(timeout=None, max_duration_seconds=900.0,
                                            **HIGH_QUALITY_PRESET)

    def test_presets_are_valid(self, service):
        service.build_config(**VOICE_MESSAGE_PRESET).validate()
        service.build_config(max_duration_seconds=600.0, **HIGH_QUALITY_PRESET).validate()

    def test_from_config(self, fake_backend, manual_clock):
        config = VadRecorderConfig()
        config.set('engine.poll_interval_ms', 250)
        config.set('recording.max_duration_seconds', 30.0)

        service = AudioRecorder.from_config(config, backend=fake_backend, clock=manual_clock)

        assert service.recorder.backend is fake_backend
        assert service.recorder.clock is manual_clock
        assert service.recorder.poll_interval == pytest.approx(0.25)
        assert service.defaults['max_duration_seconds'] == 30.0

    def test_from_config_builds_microphone_backend(self, temp_data_dir, manual_clock):
        from vadrecorder.audio.capture import PyAudioCaptureBackend

        config = VadRecorderConfig()
        config.set('storage.data_directory', temp_data_dir)

        service = AudioRecorder.from_config(config, clock=manual_clock)

        assert isinstance(service.recorder.backend, PyAudioCaptureBackend)
        assert str(service.recorder.backend.file_manager.data_dir) == temp_data_dir
