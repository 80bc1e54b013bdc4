"""Recording session controller driven by voice activity."""

import itertools
import logging
import threading
from concurrent.futures import Future
from functools import partial
from typing import Any, Dict, Optional

from ..audio.backend import CaptureBackend
from ..audio.publisher import SessionEventPublisher
from ..exceptions import (
    CaptureError,
    CaptureStartError,
    NotRecordingError,
    PermissionDeniedError,
    RecordingInProgressError,
)
from ..models.result import CaptureInfo, RecordingResult, StopReason
from ..models.session import LifecyclePhase, SessionConfig
from .lifecycle import VoiceActivityStateMachine
from .scheduler import Clock, ThreadingClock, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 0.1


class RecordingSession:
    """Everything owned by one active session."""

    def __init__(self, session_id: int, config: SessionConfig, machine: VoiceActivityStateMachine):
        self.session_id = session_id
        self.config = config
        self.machine = machine
        self.future: "Future[RecordingResult]" = Future()
        self.poll_handle: Optional[TimerHandle] = None
        self.end_check_handle: Optional[TimerHandle] = None
        self.end_check_token: Optional[int] = None

    @property
    def state(self):
        return self.machine.state


class _Finishing:
    """A claimed termination waiting for the backend to be finalized."""

    def __init__(self, session: RecordingSession, reason: StopReason, now: float,
                 error_message: Optional[str]):
        self.session = session
        self.reason = reason
        self.now = now
        self.error_message = error_message


class VoiceActivityRecorder:
    """Runs one recording session at a time and decides when it ends.

    Poll ticks, deferred end-of-speech checks and external start/stop/cancel
    calls may arrive on different threads; every one of them is applied under
    a single lock so session state is only ever mutated serially. Once a
    session's outcome is claimed, the backend is finalized or discarded with
    the lock released.
    """

    def __init__(self,
                 backend: CaptureBackend,
                 clock: Optional[Clock] = None,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 publisher: Optional[SessionEventPublisher] = None):
        """Initialize the recorder.

        Args:
            backend: Capture backend that supplies levels and output files
            clock: Time source and scheduler (threads by default)
            poll_interval: Seconds between level polls
            publisher: Optional session event publisher
        """
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.backend = backend
        self.clock = clock or ThreadingClock()
        self.poll_interval = poll_interval
        self.publisher = publisher

        self._lock = threading.RLock()
        self._session: Optional[RecordingSession] = None
        self._session_ids = itertools.count(1)
        self._tokens = itertools.count(1)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start(self, config: SessionConfig) -> "Future[RecordingResult]":
        """Validate the config, start capture and arm voice detection.

        Returns:
            Future resolved exactly once with the session's RecordingResult,
            or cancelled if the session is cancelled

        Raises:
            RecordingInProgressError: If a session is already active
            InvalidConfigError: If the config fails validation
            PermissionDeniedError: If microphone permission is missing
            CaptureStartError: If the backend fails to start
        """
        with self._lock:
            if self._session is not None:
                raise RecordingInProgressError("Recording is already in progress")

            config = config.normalized()

            if not self.backend.has_permission():
                raise PermissionDeniedError("Record audio permission not granted")

            try:
                self.backend.start_capture(config)
            except CaptureError as e:
                logger.error(f"Failed to start capture: {e}")
                self._release_backend()
                raise CaptureStartError(f"Failed to start recording: {e}") from e

            now = self.clock.now()
            session = RecordingSession(next(self._session_ids), config,
                                       VoiceActivityStateMachine(config, now))
            session.poll_handle = self.clock.schedule_periodic(
                self.poll_interval, partial(self._on_poll_tick, session))
            self._session = session

            logger.info(f"Recording session {session.session_id} started: "
                        f"{config.sample_rate}Hz, {config.channels}ch, {config.format}")
            self._publish("started", session, config=config.to_dict())
            return session.future

    def stop(self) -> RecordingResult:
        """Stop the active session manually.

        Raises:
            NotRecordingError: If no session is active
        """
        with self._lock:
            session = self._session
            if session is None or session.state.completed:
                raise NotRecordingError("No recording in progress")

            finishing = self._claim_finish(session, StopReason.MANUAL_STOP, self.clock.now())

        return self._complete_finish(finishing)

    def cancel(self) -> None:
        """Abort the active session and discard its output.

        No RecordingResult is produced; the session's future is cancelled.

        Raises:
            NotRecordingError: If no session is active
        """
        with self._lock:
            session = self._session
            if session is None:
                raise NotRecordingError("No recording in progress")

            if not session.machine.begin_cancel():
                logger.warning(f"Session {session.session_id} already completed, ignoring cancel")
                return

            self._release_timers(session)

        try:
            self._release_backend()
        finally:
            self._detach(session)
            session.future.cancel()

        logger.info(f"Recording session {session.session_id} cancelled")
        self._publish("cancelled", session)

    def is_active(self) -> bool:
        with self._lock:
            return self._session is not None

    @property
    def phase(self) -> LifecyclePhase:
        with self._lock:
            if self._session is None:
                return LifecyclePhase.IDLE
            return self._session.machine.phase

    def wait(self, timeout: Optional[float] = None) -> RecordingResult:
        """Block until the active session produces its result.

        Raises:
            NotRecordingError: If no session is active
            concurrent.futures.CancelledError: If the session is cancelled
            concurrent.futures.TimeoutError: If ``timeout`` expires first
        """
        with self._lock:
            if self._session is None:
                raise NotRecordingError("No recording in progress")
            future = self._session.future
        return future.result(timeout=timeout)

    # ------------------------------------------------------------------
    # Scheduled callbacks
    # ------------------------------------------------------------------

    def _on_poll_tick(self, session: RecordingSession) -> None:
        with self._lock:
            if self._session is not session or session.state.completed:
                return

            now = self.clock.now()
            try:
                finishing = self._process_tick(session, now)
            except Exception as e:
                logger.error(f"Unexpected error while processing audio level: {e}", exc_info=True)
                finishing = self._claim_finish(session, StopReason.ERROR, now, error_message=str(e))

        if finishing is not None:
            self._complete_finish(finishing)

    def _process_tick(self, session: RecordingSession, now: float) -> Optional[_Finishing]:
        machine = session.machine

        if machine.max_duration_elapsed(now):
            logger.info(f"Max duration of {session.config.max_duration_seconds}s reached")
            return self._claim_finish(session, StopReason.MAX_DURATION_REACHED, now)

        try:
            level_db = self.backend.poll_level()
        except CaptureError as e:
            logger.error(f"Capture failed mid-session: {e}")
            return self._claim_finish(session, StopReason.ERROR, now, error_message=str(e))

        was_speaking = machine.state.has_detected_voice
        was_paused = machine.state.is_in_thinking_pause
        decision = machine.on_level(level_db, now)

        if decision.cancel_end_check:
            self._cancel_end_check(session)
            if not was_speaking:
                self._publish("voice_detected", session, level_db=level_db)
            elif was_paused:
                self._publish("speech_resumed", session, level_db=level_db)

        if decision.schedule_end_check is not None:
            self._schedule_end_check(session, decision.schedule_end_check)
            self._publish("thinking_pause", session, delay=decision.schedule_end_check)

        return None

    def _on_end_of_speech_check(self, session: RecordingSession, token: int) -> None:
        with self._lock:
            if self._session is not session or session.state.completed:
                return
            if session.end_check_token != token:
                logger.debug(f"Ignoring stale end-of-speech check {token}")
                return

            session.end_check_handle = None
            session.end_check_token = None

            now = self.clock.now()
            if not session.machine.on_end_of_speech_check(now):
                return
            finishing = self._claim_finish(session, StopReason.SILENCE_DETECTED, now)

        if finishing is not None:
            self._complete_finish(finishing)

    def _schedule_end_check(self, session: RecordingSession, delay: float) -> None:
        # Only one deferred check may exist at a time
        self._cancel_end_check(session)

        token = next(self._tokens)
        session.end_check_token = token
        session.end_check_handle = self.clock.schedule_once(
            delay, partial(self._on_end_of_speech_check, session, token))

    def _cancel_end_check(self, session: RecordingSession) -> None:
        if session.end_check_handle is not None:
            self.clock.cancel(session.end_check_handle)
        session.end_check_handle = None
        session.end_check_token = None

    def _release_timers(self, session: RecordingSession) -> None:
        self.clock.cancel(session.poll_handle)
        session.poll_handle = None
        self._cancel_end_check(session)

    def _release_backend(self) -> None:
        try:
            self.backend.discard_capture()
        except Exception as e:
            logger.error(f"Failed to discard capture output: {e}",
                         exc_info=not isinstance(e, CaptureError))

    def _detach(self, session: RecordingSession) -> None:
        with self._lock:
            if self._session is session:
                self._session = None

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def _claim_finish(self,
                      session: RecordingSession,
                      reason: StopReason,
                      now: float,
                      error_message: Optional[str] = None) -> Optional[_Finishing]:
        """Claim the terminal outcome and release timers. Caller must hold the lock."""
        if not session.machine.begin_finishing(reason, now):
            logger.warning(f"Session {session.session_id} already completed, "
                           f"ignoring {reason.value} termination")
            return None

        self._release_timers(session)
        return _Finishing(session, reason, now, error_message)

    def _complete_finish(self, finishing: _Finishing) -> RecordingResult:
        """Finalize the backend output and deliver the result.

        Runs without the recorder lock: the session is already claimed, so
        ticks, checks, stop and cancel all leave it alone meanwhile.
        """
        session = finishing.session
        machine = session.machine
        reason = finishing.reason
        error_message = finishing.error_message

        try:
            try:
                info = self.backend.stop_capture()
            except Exception as e:
                logger.error(f"Failed to finalize recording: {e}",
                             exc_info=not isinstance(e, CaptureError))
                info = CaptureInfo(file_path="", file_size_bytes=0)
                reason = StopReason.ERROR
                error_message = str(e)

            result = RecordingResult(
                file_path=info.file_path,
                duration=machine.recording_duration(finishing.now),
                actual_speech_duration=machine.state.accumulated_speech_seconds,
                file_size=info.file_size_bytes,
                reason=reason,
                error_message=error_message,
            )
        finally:
            self._detach(session)

        session.future.set_result(result)

        logger.info(f"Recording session {session.session_id} finished: {reason.value}, "
                    f"{result.duration:.2f}s total, {result.actual_speech_duration:.2f}s speech, "
                    f"{result.file_size} bytes")
        self._publish("stopped", session, **result.to_dict())
        return result

    def _publish(self, event_type: str, session: RecordingSession, **metadata: Any) -> None:
        if self.publisher is None:
            return

        details: Dict[str, Any] = {"session_id": session.session_id}
        details.update(metadata)
        try:
            self.publisher.publish(event_type, details)
        except Exception as e:
            logger.error(f"Session event listener failed on {event_type}: {e}", exc_info=True)

