"""Clock and timer services used to drive the recorder."""

import itertools
import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class TimerHandle:
    """Opaque handle for a scheduled callback."""

    def __init__(self, handle_id: int, periodic: bool):
        self.handle_id = handle_id
        self.periodic = periodic
        self.cancelled = False

    def __repr__(self) -> str:
        kind = "periodic" if self.periodic else "once"
        state = " cancelled" if self.cancelled else ""
        return f"<TimerHandle {self.handle_id} {kind}{state}>"


class Clock(ABC):
    """Monotonic time source that can schedule callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Current monotonic time in seconds."""
        pass

    @abstractmethod
    def schedule_periodic(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke ``callback`` every ``interval`` seconds until cancelled."""
        pass

    @abstractmethod
    def schedule_once(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Invoke ``callback`` once after ``delay`` seconds unless cancelled."""
        pass

    @abstractmethod
    def cancel(self, handle: Optional[TimerHandle]) -> None:
        """Cancel a scheduled callback. Safe to call more than once."""
        pass


class ThreadingClock(Clock):
    """Wall-clock scheduling on background threads.

    Periodic callbacks run on a daemon thread per handle, one-shot callbacks
    on ``threading.Timer``. ``cancel`` never joins, so it is safe to call
    from inside a lock that the callbacks themselves acquire; an invocation
    that already passed its cancellation check may still run once, so
    callers must tolerate a late callback.
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._stop_events: Dict[int, threading.Event] = {}
        self._timers: Dict[int, threading.Timer] = {}

    def now(self) -> float:
        return time.monotonic()

    def schedule_periodic(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(next(self._ids), periodic=True)
        stop_event = threading.Event()

        def run() -> None:
            while not stop_event.wait(interval):
                if handle.cancelled:
                    break
                try:
                    callback()
                except Exception as e:
                    logger.error(f"Periodic callback {handle.handle_id} failed: {e}", exc_info=True)
            logger.debug(f"Periodic timer {handle.handle_id} exiting")

        with self._lock:
            self._stop_events[handle.handle_id] = stop_event

        thread = threading.Thread(target=run, daemon=True)
        thread.name = f"PeriodicTimer-{handle.handle_id}"
        thread.start()
        return handle

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(next(self._ids), periodic=False)

        def run() -> None:
            with self._lock:
                self._timers.pop(handle.handle_id, None)
            if handle.cancelled:
                return
            try:
                callback()
            except Exception as e:
                logger.error(f"Deferred callback {handle.handle_id} failed: {e}", exc_info=True)

        timer = threading.Timer(max(0.0, delay), run)
        timer.daemon = True
        timer.name = f"DeferredTimer-{handle.handle_id}"
        with self._lock:
            self._timers[handle.handle_id] = timer
        timer.start()
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or handle.cancelled:
            return
        handle.cancelled = True

        with self._lock:
            stop_event = self._stop_events.pop(handle.handle_id, None)
            timer = self._timers.pop(handle.handle_id, None)

        if stop_event is not None:
            stop_event.set()
        if timer is not None:
            timer.cancel()


class _ScheduledTask:
    def __init__(self, handle: TimerHandle, due_us: int, interval_us: Optional[int],
                 callback: Callable[[], None], sequence: int):
        self.handle = handle
        self.due_us = due_us
        self.interval_us = interval_us
        self.callback = callback
        self.sequence = sequence


def _to_us(seconds: float) -> int:
    return int(round(seconds * 1_000_000))


class ManualClock(Clock):
    """Virtual clock that only moves when ``advance`` is called.

    Time is tracked in whole microseconds so that repeated intervals do not
    accumulate floating-point drift. Due callbacks fire in order of due time,
    then scheduling order; a callback scheduled with zero delay during an
    advance fires in that same advance.
    """

    def __init__(self, start: float = 0.0):
        self._now_us = _to_us(start)
        self._ids = itertools.count(1)
        self._sequence = itertools.count()
        self._tasks: Dict[int, _ScheduledTask] = {}

    def now(self) -> float:
        return self._now_us / 1_000_000

    def schedule_periodic(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        interval_us = _to_us(interval)
        if interval_us <= 0:
            raise ValueError("Periodic interval must be positive")
        handle = TimerHandle(next(self._ids), periodic=True)
        self._tasks[handle.handle_id] = _ScheduledTask(
            handle, self._now_us + interval_us, interval_us, callback, next(self._sequence))
        return handle

    def schedule_once(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(next(self._ids), periodic=False)
        self._tasks[handle.handle_id] = _ScheduledTask(
            handle, self._now_us + max(0, _to_us(delay)), None, callback, next(self._sequence))
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None:
            return
        handle.cancelled = True
        self._tasks.pop(handle.handle_id, None)

    def pending(self) -> int:
        """Number of callbacks still scheduled."""
        return len(self._tasks)

    def is_scheduled(self, handle: Optional[TimerHandle]) -> bool:
        return handle is not None and handle.handle_id in self._tasks

    def advance(self, seconds: float) -> None:
        """Move time forward, firing every callback that falls due."""
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self.advance_to(self._now_us / 1_000_000 + seconds)

    def advance_to(self, target: float) -> None:
        target_us = max(self._now_us, _to_us(target))

        while True:
            due = [task for task in self._tasks.values() if task.due_us <= target_us]
            if not due:
                break

            task = min(due, key=lambda t: (t.due_us, t.sequence))
            self._now_us = max(self._now_us, task.due_us)

            if task.interval_us is None:
                del self._tasks[task.handle.handle_id]
            else:
                task.due_us += task.interval_us

            task.callback()

        self._now_us = target_us
