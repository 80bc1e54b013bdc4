"""Loudness-threshold voice activity classification."""

import math
import logging

import numpy as np

logger = logging.getLogger(__name__)

# Level reported for digital silence instead of log10(0)
SILENCE_FLOOR_DB = -96.0

# Full-scale amplitude of 16-bit PCM
INT16_FULL_SCALE = 32767.0


def is_voice(level_db: float, noise_floor_db: float, voice_activity_threshold_db: float) -> bool:
    """Return True when a loudness sample counts as voice.

    A sample must clear both the noise floor and the voice threshold.
    """
    return level_db > noise_floor_db and level_db > voice_activity_threshold_db


def amplitude_to_db(amplitude: float, full_scale: float = INT16_FULL_SCALE) -> float:
    """Convert a linear amplitude to dBFS."""
    if amplitude <= 0:
        return SILENCE_FLOOR_DB
    return 20 * math.log10(amplitude / full_scale)


def rms_amplitude(pcm: bytes) -> float:
    """Root-mean-square amplitude of 16-bit little-endian PCM samples."""
    usable = len(pcm) - (len(pcm) % 2)
    if usable <= 0:
        return 0.0

    samples = np.frombuffer(pcm[:usable], dtype="<i2").astype(np.float64)
    return float(np.sqrt(np.mean(samples ** 2)))


def pcm_level_db(pcm: bytes) -> float:
    """Loudness of a PCM chunk in dBFS."""
    return amplitude_to_db(rms_amplitude(pcm))


class VoiceClassifier:
    """Voice/silence classifier bound to one pair of thresholds."""

    def __init__(self, noise_floor_db: float, voice_activity_threshold_db: float):
        self.noise_floor_db = noise_floor_db
        self.voice_activity_threshold_db = voice_activity_threshold_db

    def classify(self, level_db: float) -> bool:
        return is_voice(level_db, self.noise_floor_db, self.voice_activity_threshold_db)

    def classify_amplitude(self, amplitude: float, full_scale: float = INT16_FULL_SCALE) -> bool:
        return self.classify(amplitude_to_db(amplitude, full_scale))
