"""Voice-activity lifecycle state machine.

The state machine turns classified loudness samples and elapsed time into
lifecycle decisions. It owns the ``SessionState`` of one session but never
touches a clock or a capture backend: callers apply the returned decisions
(cancel or schedule the end-of-speech check, finish the session).

Phases::

    armed --voice--> speaking --silence >= thinking pause--> thinking_pause
      ^                 ^                                         |
      |                 +----------------voice--------------------+
      +-- any phase --max duration / check / stop--> finishing
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..models.result import StopReason
from ..models.session import LifecyclePhase, SessionConfig, SessionState
from ..vad.classifier import VoiceClassifier

logger = logging.getLogger(__name__)

# Absorbs floating-point jitter in timer arithmetic
TIME_TOLERANCE = 1e-6


@dataclass(frozen=True)
class TickDecision:
    """What the owner of the timers must do after a sample."""
    cancel_end_check: bool = False
    schedule_end_check: Optional[float] = None  # delay in seconds


NO_ACTION = TickDecision()


class VoiceActivityStateMachine:
    """Decides speech start, thinking pauses, end of speech and termination."""

    def __init__(self, config: SessionConfig, start_time: float):
        """Initialize state for a session that started capturing at ``start_time``.

        Args:
            config: Normalized session configuration
            start_time: Clock time at which capture started
        """
        self.config = config
        self.state = SessionState(recording_start_time=start_time)
        self.phase = LifecyclePhase.ARMED
        self.classifier = VoiceClassifier(config.noise_floor_db, config.voice_activity_threshold_db)

    @property
    def completed(self) -> bool:
        return self.state.completed

    def recording_duration(self, now: float) -> float:
        return now - self.state.recording_start_time

    def max_duration_elapsed(self, now: float) -> bool:
        return self.recording_duration(now) + TIME_TOLERANCE >= self.config.max_duration_seconds

    def on_level(self, level_db: float, now: float) -> TickDecision:
        """Classify a loudness sample and feed it to ``on_sample``."""
        return self.on_sample(self.classifier.classify(level_db), now)

    def on_sample(self, is_voice: bool, now: float) -> TickDecision:
        """Update voice/silence state for one poll tick."""
        state = self.state
        if state.completed:
            return NO_ACTION

        if is_voice:
            if not state.has_detected_voice:
                state.has_detected_voice = True
                state.speech_start_time = now
                logger.info(f"Voice started {self.recording_duration(now):.2f}s into recording")
            elif state.is_in_thinking_pause:
                logger.debug(f"Speech resumed after {now - state.last_voice_activity_time:.2f}s pause")

            if state.last_voice_activity_time is None or now > state.last_voice_activity_time:
                state.last_voice_activity_time = now
            state.is_in_thinking_pause = False
            self.phase = LifecyclePhase.SPEAKING
            return TickDecision(cancel_end_check=True)

        if not state.has_detected_voice or state.is_in_thinking_pause:
            return NO_ACTION

        silence = now - state.last_voice_activity_time
        if silence + TIME_TOLERANCE >= self.config.thinking_pause_threshold:
            state.is_in_thinking_pause = True
            self.phase = LifecyclePhase.THINKING_PAUSE
            delay = self.config.end_of_speech_delay
            logger.info(f"Thinking pause after {silence:.2f}s of silence, "
                        f"end-of-speech check in {delay:.2f}s")
            return TickDecision(schedule_end_check=delay)

        return NO_ACTION

    def on_end_of_speech_check(self, now: float) -> bool:
        """Evaluate the deferred end-of-speech check.

        Returns:
            True if the session should finish with ``silence_detected``
        """
        state = self.state
        if state.completed or not state.has_detected_voice:
            return False

        total_silence = now - state.last_voice_activity_time
        if total_silence + TIME_TOLERANCE < self.config.end_of_speech_threshold:
            logger.debug(f"End-of-speech check after only {total_silence:.2f}s of silence, ignoring")
            return False

        if self.recording_duration(now) * 1000 + TIME_TOLERANCE < self.config.min_recording_duration_ms:
            logger.info(f"End of speech detected but recording is shorter than "
                        f"{self.config.min_recording_duration_ms}ms, continuing")
            # Leaving the pause makes the next silent tick schedule a fresh check;
            # keeping it set would leave only max duration able to end the session
            state.is_in_thinking_pause = False
            self.phase = LifecyclePhase.SPEAKING
            return False

        state.accumulated_speech_seconds = state.last_voice_activity_time - state.speech_start_time
        logger.info(f"End of speech after {total_silence:.2f}s of silence, "
                    f"speech lasted {state.accumulated_speech_seconds:.2f}s")
        return True

    def begin_finishing(self, reason: StopReason, now: float) -> bool:
        """Claim the single terminal outcome of the session.

        Returns:
            False if the session already completed, in which case nothing changes
        """
        if not self._mark_completed():
            return False

        state = self.state
        if reason is not StopReason.SILENCE_DETECTED:
            if state.has_detected_voice:
                state.accumulated_speech_seconds = now - state.speech_start_time
            else:
                state.accumulated_speech_seconds = 0.0

        self.phase = LifecyclePhase.FINISHING
        return True

    def begin_cancel(self) -> bool:
        """Claim the terminal outcome for a cancellation."""
        if not self._mark_completed():
            return False
        self.phase = LifecyclePhase.FINISHING
        return True

    def _mark_completed(self) -> bool:
        if self.state.completed:
            return False
        self.state.completed = True
        return True
