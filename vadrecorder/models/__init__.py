"""Data models for the vadrecorder package."""

from .session import SessionConfig, SessionState, LifecyclePhase
from .result import RecordingResult, StopReason, CaptureInfo
from .events import SessionEvent

__all__ = [
    "SessionConfig",
    "SessionState",
    "LifecyclePhase",
    "RecordingResult",
    "StopReason",
    "CaptureInfo",
    "SessionEvent",
]
