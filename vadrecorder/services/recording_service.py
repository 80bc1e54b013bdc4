"""Caller-facing recording service that applies defaults and presets."""

import logging
from concurrent.futures import Future
from typing import Any, Dict, Optional

from ..audio.backend import CaptureBackend
from ..audio.publisher import SessionEventPublisher
from ..config import VadRecorderConfig
from ..engine.recorder import VoiceActivityRecorder
from ..engine.scheduler import Clock
from ..exceptions import PermissionDeniedError, RecordingInProgressError
from ..models.result import RecordingResult
from ..models.session import SessionConfig

logger = logging.getLogger(__name__)


DEFAULT_SESSION_CONFIG: Dict[str, Any] = {
    'format': 'wav',
    'sample_rate': 44100,
    'bit_rate': 128000,
    'channels': 1,
    'thinking_pause_threshold': 1.5,
    'end_of_speech_threshold': 2.5,
    'noise_floor_db': -50.0,
    'voice_activity_threshold_db': -35.0,
    'max_duration_seconds': 300.0,  # 5 minutes
    'min_recording_duration_ms': 500.0,
}

# Lower quality, quicker cut-off for short voice messages
VOICE_MESSAGE_PRESET: Dict[str, Any] = {
    'sample_rate': 22050,
    'bit_rate': 64000,
    'channels': 1,
    'thinking_pause_threshold': 1.0,
    'end_of_speech_threshold': 2.0,
    'max_duration_seconds': 120.0,
    'min_recording_duration_ms': 300.0,
}

HIGH_QUALITY_PRESET: Dict[str, Any] = {
    'sample_rate': 48000,
    'bit_rate': 256000,
    'channels': 2,
    'thinking_pause_threshold': 2.0,
    'end_of_speech_threshold': 3.0,
    'min_recording_duration_ms': 1000.0,
}


class AudioRecorder:
    """Recording API for applications.

    Merges caller overrides over configured and built-in defaults, takes care
    of microphone permission and forwards to the voice-activity recorder.
    """

    def __init__(self, recorder: VoiceActivityRecorder, defaults: Optional[Dict[str, Any]] = None):
        """Initialize the service.

        Args:
            recorder: Engine that runs the sessions
            defaults: Overrides of DEFAULT_SESSION_CONFIG applied to every session
        """
        self.recorder = recorder
        self.defaults = dict(DEFAULT_SESSION_CONFIG)
        self.defaults.update(defaults or {})

    @classmethod
    def from_config(cls,
                    config: VadRecorderConfig,
                    backend: Optional[CaptureBackend] = None,
                    clock: Optional[Clock] = None,
                    publisher: Optional[SessionEventPublisher] = None) -> "AudioRecorder":
        """Build the service and its engine from application configuration.

        Without an explicit backend the PyAudio microphone backend is used.
        """
        if backend is None:
            from ..audio.capture import PyAudioCaptureBackend
            from ..storage.file_manager import FileManager
            backend = PyAudioCaptureBackend(FileManager(config.get_data_directory()))

        recorder = VoiceActivityRecorder(
            backend=backend,
            clock=clock,
            poll_interval=config.get_poll_interval(),
            publisher=publisher,
        )
        return cls(recorder, config.get_recording_defaults())

    def check_microphone_permission(self) -> bool:
        return self.recorder.backend.has_permission()

    def request_microphone_permission(self) -> bool:
        granted = self.recorder.backend.request_permission()
        logger.info(f"Microphone permission {'granted' if granted else 'denied'}")
        return granted

    def build_config(self, **overrides: Any) -> SessionConfig:
        """Merge overrides over the defaults into a complete session config."""
        merged = dict(self.defaults)
        merged.update(overrides)
        return SessionConfig.from_dict(merged)

    def start_recording(self, **overrides: Any) -> "Future[RecordingResult]":
        """Start a session and return the future of its result.

        Raises:
            PermissionDeniedError: If microphone permission is refused
            RecorderError: Any rejection from the engine
        """
        if not self.check_microphone_permission():
            if not self.request_microphone_permission():
                raise PermissionDeniedError("Microphone permission is required for recording")

        config = self.build_config(**overrides)
        return self.recorder.start(config)

    def stop_recording(self) -> RecordingResult:
        return self.recorder.stop()

    def cancel_recording(self) -> None:
        self.recorder.cancel()

    def is_recording(self) -> bool:
        return self.recorder.is_active()

    def record(self, timeout: Optional[float] = None, **overrides: Any) -> RecordingResult:
        """Record until voice activity detection (or a stop) ends the session.

        Raises:
            RecordingInProgressError: If a session is already active
            concurrent.futures.CancelledError: If the session is cancelled meanwhile
        """
        if self.is_recording():
            raise RecordingInProgressError("Recording already in progress")

        future = self.start_recording(**overrides)
        return future.result(timeout=timeout)

    def record_voice_message(self, timeout: Optional[float] = None) -> RecordingResult:
        """Record a short voice message with voice-friendly settings."""
        return self.record(timeout=timeout, **VOICE_MESSAGE_PRESET)

    def record_high_quality(self,
                            max_duration_seconds: float = 600.0,
                            timeout: Optional[float] = None) -> RecordingResult:
        """Record in stereo at 48kHz with more tolerant pauses."""
        return self.record(timeout=timeout, max_duration_seconds=max_duration_seconds,
                           **HIGH_QUALITY_PRESET)
