"""Recording result data models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any


class StopReason(Enum):
    """Why a session stopped. No other values are valid output."""
    SILENCE_DETECTED = "silence_detected"
    MANUAL_STOP = "manual_stop"
    MAX_DURATION_REACHED = "max_duration_reached"
    ERROR = "error"


@dataclass(frozen=True)
class CaptureInfo:
    """Output file reported by a capture backend when it stops."""
    file_path: str
    file_size_bytes: int


@dataclass(frozen=True)
class RecordingResult:
    """Final outcome of a recording session."""
    file_path: str
    duration: float                # seconds from start to stop
    actual_speech_duration: float  # seconds of detected speech
    file_size: int                 # bytes
    reason: StopReason
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "file_path": self.file_path,
            "duration": self.duration,
            "actual_speech_duration": self.actual_speech_duration,
            "file_size": self.file_size,
            "reason": self.reason.value,
        }
        if self.error_message is not None:
            data["error_message"] = self.error_message
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordingResult":
        return cls(
            file_path=data["file_path"],
            duration=data["duration"],
            actual_speech_duration=data["actual_speech_duration"],
            file_size=data["file_size"],
            reason=StopReason(data["reason"]),
            error_message=data.get("error_message"),
        )
