"""Voice activity detection."""

from .classifier import (
    SILENCE_FLOOR_DB,
    VoiceClassifier,
    amplitude_to_db,
    is_voice,
    pcm_level_db,
    rms_amplitude,
)

__all__ = [
    "SILENCE_FLOOR_DB",
    "VoiceClassifier",
    "amplitude_to_db",
    "is_voice",
    "pcm_level_db",
    "rms_amplitude",
]
