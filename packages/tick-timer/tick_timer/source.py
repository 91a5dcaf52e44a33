"""TimerSource - a cancellable, suspendable, periodic timer primitive.

A source is bound to one executor and starts out suspended. Suspend and
resume calls must balance: ``resume()`` on a source that is not suspended
raises ``SuspendBalanceError``. ``cancel()`` is permanent.

Missed periods are coalesced into one firing. If the executor falls behind,
or the source sits suspended across several deadlines, the handler runs once
and the schedule continues on the original grid.
"""
from __future__ import annotations

import logging
import math
import threading

from tick_timer.types import Executor, Handle, Handler, SuspendBalanceError

logger = logging.getLogger(__name__)


class TimerSource:

    def __init__(self, executor: Executor) -> None:
        self._executor = executor
        self._lock = threading.RLock()
        self._handler: Handler | None = None
        self._deadline: float | None = None
        self._interval: float | None = None
        self._suspend_count = 1
        self._cancelled = False
        self._armed: Handle | None = None
        # Bumped whenever the armed call is replaced; stale firings compare unequal.
        self._generation = 0

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def is_suspended(self) -> bool:
        return self._suspend_count > 0

    @property
    def next_deadline(self) -> float | None:
        """Executor time of the next firing, or None if nothing is scheduled."""
        return self._deadline

    @property
    def interval(self) -> float | None:
        return self._interval

    def set_handler(self, handler: Handler | None) -> None:
        with self._lock:
            if not self._cancelled:
                self._handler = handler

    def schedule(self, deadline: float, repeating: float | None = None) -> None:
        """Fire first at ``deadline``, then every ``repeating`` seconds.

        ``repeating=None`` makes a one-shot schedule. Replaces any previous
        schedule, including one that is mid-period.
        """
        if repeating is not None and repeating <= 0:
            raise ValueError(f"repeating must be positive, got {repeating}")
        with self._lock:
            if self._cancelled:
                return
            self._deadline = deadline
            self._interval = repeating
            self._rearm()

    def resume(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            if self._suspend_count == 0:
                raise SuspendBalanceError(
                    self._suspend_count, "resume() called on a source that is not suspended"
                )
            self._suspend_count -= 1
            if self._suspend_count == 0:
                self._rearm()

    def suspend(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._suspend_count += 1
            if self._suspend_count == 1:
                self._disarm()

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            self._disarm()
            self._handler = None
            self._deadline = None
        logger.debug("Timer source cancelled")

    def _disarm(self) -> None:
        self._generation += 1
        if self._armed is not None:
            self._armed.cancel()
            self._armed = None

    def _rearm(self) -> None:
        self._disarm()
        if self._suspend_count > 0 or self._deadline is None:
            return
        generation = self._generation
        self._armed = self._executor.call_at(
            self._deadline, lambda: self._fire(generation)
        )

    def _fire(self, generation: int) -> None:
        with self._lock:
            if (
                generation != self._generation
                or self._cancelled
                or self._suspend_count > 0
                or self._deadline is None
            ):
                return
            handler = self._handler
            if self._interval is None:
                self._deadline = None
                self._armed = None
            else:
                self._deadline = self._next_after(self._deadline, self._interval)
                self._rearm()
        if handler is not None:
            handler()

    def _next_after(self, deadline: float, interval: float) -> float:
        now = self._executor.time()
        following = deadline + interval
        if following > now:
            return following
        missed = math.floor((now - deadline) / interval)
        logger.debug("Timer source coalesced %d missed period(s)", missed)
        return deadline + (missed + 1) * interval
