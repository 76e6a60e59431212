"""Cancellable timer scheduler driven by a virtual millisecond clock.

Nothing fires on its own: the host loop (or a test) calls `advance()` to
move time forward. This keeps every delayed continuation on the same
thread as the input events that scheduled it.
"""

import logging
from typing import Callable

from runtime.base import Scheduler, TimerToken

logger = logging.getLogger(__name__)


class ManualTimer(TimerToken):
    """A pending callback owned by a ManualScheduler."""

    def __init__(self, due_ms: int, sequence: int, callback: Callable[[], None]):
        self.due_ms = due_ms
        self.sequence = sequence
        self.callback = callback
        self._cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._cancelled and not self.fired


class ManualScheduler(Scheduler):
    """Scheduler whose clock only moves when told to."""

    def __init__(self, max_callbacks_per_drain: int = 10_000):
        self._clock_ms = 0
        self._sequence = 0
        self._timers: list[ManualTimer] = []
        self.max_callbacks_per_drain = max_callbacks_per_drain

    def after(self, ms: int, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self._clock_ms + max(0, int(ms)), self._sequence, callback)
        self._sequence += 1
        self._timers.append(timer)
        return timer

    def now(self) -> float:
        return self._clock_ms / 1000.0

    @property
    def now_ms(self) -> int:
        return self._clock_ms

    @property
    def pending(self) -> int:
        """Number of timers that are neither cancelled nor fired."""
        return sum(1 for t in self._timers if t.active)

    def advance(self, ms: int) -> int:
        """Move the clock forward, firing every timer that falls due.

        Timers fire in due-time order; timers due at the same instant fire
        in the order they were scheduled. Callbacks may schedule new timers,
        which fire in the same call if they fall inside the window.

        Returns:
            Number of callbacks that ran.
        """
        target = self._clock_ms + max(0, int(ms))
        fired = 0
        while True:
            due = [t for t in self._timers if t.active and t.due_ms <= target]
            if not due:
                break
            if fired >= self.max_callbacks_per_drain:
                raise RuntimeError(
                    f"More than {self.max_callbacks_per_drain} timer callbacks "
                    f"in one advance; a callback is probably rescheduling itself"
                )
            timer = min(due, key=lambda t: (t.due_ms, t.sequence))
            self._clock_ms = timer.due_ms
            timer.fired = True
            fired += 1
            try:
                timer.callback()
            except Exception:
                logger.exception("Timer callback failed")
        self._clock_ms = target
        self._timers = [t for t in self._timers if t.active]
        return fired

    def run_all(self) -> int:
        """Fire every pending timer, including ones scheduled while draining."""
        fired = 0
        while True:
            active = [t for t in self._timers if t.active]
            if not active:
                return fired
            if fired >= self.max_callbacks_per_drain:
                raise RuntimeError(
                    f"More than {self.max_callbacks_per_drain} timer callbacks "
                    f"while draining; a callback is probably rescheduling itself"
                )
            next_due = min(t.due_ms for t in active)
            fired += self.advance(next_due - self._clock_ms)
