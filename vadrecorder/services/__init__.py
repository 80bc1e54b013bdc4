"""Services layer for vadrecorder application logic."""

from .recording_service import (
    AudioRecorder,
    DEFAULT_SESSION_CONFIG,
    HIGH_QUALITY_PRESET,
    VOICE_MESSAGE_PRESET,
)

__all__ = [
    "AudioRecorder",
    "DEFAULT_SESSION_CONFIG",
    "HIGH_QUALITY_PRESET",
    "VOICE_MESSAGE_PRESET",
]
