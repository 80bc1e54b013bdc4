"""Session-related data models."""

import logging
from dataclasses import dataclass, asdict, fields, replace
from enum import Enum
from typing import Dict, Any, Optional

from ..exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("aac", "mp3", "wav")

MIN_SAMPLE_RATE = 8000
MAX_SAMPLE_RATE = 48000
MIN_BIT_RATE = 8000
MAX_BIT_RATE = 320000

# Applied when the voice threshold does not sit above the noise floor
VOICE_THRESHOLD_MARGIN_DB = 10.0


class LifecyclePhase(Enum):
    """Where a recorder is in the life of a session."""
    IDLE = "idle"
    ARMED = "armed"
    SPEAKING = "speaking"
    THINKING_PAUSE = "thinking_pause"
    FINISHING = "finishing"


@dataclass(frozen=True)
class SessionConfig:
    """Configuration for one recording session.

    Every field is required here; defaults are merged in by the
    caller-facing layer before a config reaches the recorder.
    """
    format: str
    sample_rate: int
    bit_rate: int
    channels: int
    thinking_pause_threshold: float  # seconds of silence before a thinking pause
    end_of_speech_threshold: float   # seconds of silence that end the session
    noise_floor_db: float
    voice_activity_threshold_db: float
    max_duration_seconds: float
    min_recording_duration_ms: float

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionConfig":
        """Build a config from a mapping of field names to values.

        Raises:
            InvalidConfigError: If a field is missing or an unknown key is present
        """
        names = [f.name for f in fields(cls)]
        unknown = sorted(set(data) - set(names))
        if unknown:
            raise InvalidConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        missing = [name for name in names if name not in data]
        if missing:
            raise InvalidConfigError(f"Missing configuration keys: {', '.join(missing)}")

        return cls(**{name: data[name] for name in names})

    @property
    def end_of_speech_delay(self) -> float:
        """Delay between entering a thinking pause and the end-of-speech check."""
        return self.end_of_speech_threshold - self.thinking_pause_threshold

    def validate(self) -> None:
        """Check numeric ranges and threshold ordering.

        Raises:
            InvalidConfigError: On the first violated constraint
        """
        if self.format not in SUPPORTED_FORMATS:
            raise InvalidConfigError(
                f"Format must be one of {', '.join(SUPPORTED_FORMATS)}, got {self.format!r}")
        if not MIN_SAMPLE_RATE <= self.sample_rate <= MAX_SAMPLE_RATE:
            raise InvalidConfigError("Sample rate must be between 8000 and 48000 Hz")
        if self.channels not in (1, 2):
            raise InvalidConfigError("Channels must be 1 (mono) or 2 (stereo)")
        if not MIN_BIT_RATE <= self.bit_rate <= MAX_BIT_RATE:
            raise InvalidConfigError("Bit rate must be between 8000 and 320000 bps")
        if self.thinking_pause_threshold < 0:
            raise InvalidConfigError("thinking_pause_threshold must be >= 0")
        if self.end_of_speech_threshold < self.thinking_pause_threshold:
            raise InvalidConfigError(
                "end_of_speech_threshold must be >= thinking_pause_threshold")
        if self.max_duration_seconds <= 0:
            raise InvalidConfigError("max_duration_seconds must be > 0")
        if self.min_recording_duration_ms < 0:
            raise InvalidConfigError("min_recording_duration_ms must be >= 0")

    def normalized(self) -> "SessionConfig":
        """Validate and return the config the engine should actually run with."""
        self.validate()

        if self.voice_activity_threshold_db <= self.noise_floor_db:
            adjusted = self.noise_floor_db + VOICE_THRESHOLD_MARGIN_DB
            logger.warning(f"Voice threshold {self.voice_activity_threshold_db} dB is not above "
                           f"noise floor {self.noise_floor_db} dB, using {adjusted} dB")
            return replace(self, voice_activity_threshold_db=adjusted)

        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionState:
    """Mutable timing state of the active session."""
    recording_start_time: float
    last_voice_activity_time: Optional[float] = None
    speech_start_time: Optional[float] = None
    accumulated_speech_seconds: float = 0.0
    has_detected_voice: bool = False
    is_in_thinking_pause: bool = False
    completed: bool = False
