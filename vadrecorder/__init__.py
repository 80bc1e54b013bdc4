"""Voice-activity driven recording lifecycle controller."""

from .engine import ManualClock, ThreadingClock, VoiceActivityRecorder
from .exceptions import (
    CaptureError,
    CaptureStartError,
    InvalidConfigError,
    NotRecordingError,
    PermissionDeniedError,
    RecorderError,
    RecordingInProgressError,
)
from .models import LifecyclePhase, RecordingResult, SessionConfig, StopReason
from .services import AudioRecorder

__version__ = "0.1.0"

__all__ = [
    "AudioRecorder",
    "VoiceActivityRecorder",
    "ManualClock",
    "ThreadingClock",
    "SessionConfig",
    "RecordingResult",
    "StopReason",
    "LifecyclePhase",
    "RecorderError",
    "InvalidConfigError",
    "PermissionDeniedError",
    "RecordingInProgressError",
    "NotRecordingError",
    "CaptureStartError",
    "CaptureError",
]
