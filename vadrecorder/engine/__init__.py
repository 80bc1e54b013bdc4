"""Voice-activity recording engine."""

from .lifecycle import TickDecision, VoiceActivityStateMachine
from .recorder import RecordingSession, VoiceActivityRecorder
from .scheduler import Clock, ManualClock, ThreadingClock, TimerHandle

__all__ = [
    "Clock",
    "ManualClock",
    "ThreadingClock",
    "TimerHandle",
    "TickDecision",
    "VoiceActivityStateMachine",
    "RecordingSession",
    "VoiceActivityRecorder",
]
