"""Timer - periodic, countdown and delayed execution over one TimerSource."""
from __future__ import annotations

import logging
import threading
import weakref
from datetime import timedelta

from tick_timer.config import TimerConfig
from tick_timer.executors import main_executor
from tick_timer.source import TimerSource
from tick_timer.types import Executor, Handler, TimerState

logger = logging.getLogger(__name__)


def _seconds(value: float | timedelta) -> float:
    """Normalize int seconds, float seconds or a timedelta to float seconds."""
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected seconds or timedelta, got {type(value).__name__}")
    return float(value)


class Timer:
    """Controllable periodic timer, self-cancelling countdown and delay.

    State machine::

        IDLE --start/countdown--> RUNNING --pause--> PAUSED
        PAUSED --restart--> RUNNING
        any --stop--> STOPPED   (terminal)

    ``start``/``countdown`` while RUNNING or PAUSED reconfigure the same
    underlying source and leave the timer RUNNING. Every other call that does
    not match a transition is a no-op. ``after`` is independent of the state
    machine and works in every state.

    The source is created on the first ``start``/``countdown`` and cancelled
    when the Timer is garbage collected.

    Callbacks run on ``executor``. If that executor runs callbacks
    concurrently (``ThreadExecutor(max_workers>1)``), successive firings of
    this timer may overlap; the countdown budget stays consistent but the
    handler itself is not serialized.
    """

    def __init__(
        self,
        executor: Executor | None = None,
        config: TimerConfig | None = None,
    ) -> None:
        self._executor = executor if executor is not None else main_executor()
        self._config = config if config is not None else TimerConfig()
        self._lock = threading.RLock()
        self._source: TimerSource | None = None
        self._state = TimerState.IDLE
        self._remaining = 0.0
        # Bumped by start/countdown/stop; ticks from older schedules compare unequal.
        self._generation = 0
        self._finalizer: weakref.finalize | None = None

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def config(self) -> TimerConfig:
        return self._config

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def remaining(self) -> float:
        """Countdown budget left, in seconds. May end below zero."""
        return self._remaining

    # --- Periodic ---

    def start(self, interval: float | timedelta, handler: Handler) -> None:
        """Run ``handler`` now and then every ``interval``."""
        seconds = self._positive(interval, "interval")
        with self._lock:
            if not self._can_activate():
                return
            self._generation += 1
            source = self._ensure_source()
            source.set_handler(handler)
            source.schedule(self._executor.time(), seconds)
            self._activate()
            logger.debug("Timer started, interval=%s", seconds)

    def pause(self) -> None:
        with self._lock:
            if self._state is not TimerState.RUNNING:
                return
            assert self._source is not None
            self._source.suspend()
            self._state = TimerState.PAUSED
            logger.debug("Timer paused")

    def restart(self) -> None:
        """Resume a paused timer on its existing schedule."""
        with self._lock:
            if self._state is not TimerState.PAUSED:
                return
            assert self._source is not None
            self._source.resume()
            self._state = TimerState.RUNNING
            logger.debug("Timer restarted")

    def stop(self) -> None:
        """Cancel the timer for good. Pending ``after`` calls are unaffected."""
        with self._lock:
            if self._state is TimerState.STOPPED:
                return
            self._generation += 1
            if self._source is not None:
                self._source.cancel()
            self._state = TimerState.STOPPED
            logger.debug("Timer stopped")

    # --- Countdown ---

    def countdown(
        self,
        total: float | timedelta,
        repeating: float | timedelta,
        handler: Handler,
    ) -> None:
        """Run ``handler`` now and every ``repeating`` until ``total`` is spent.

        Each firing takes ``repeating`` off the budget. The firing that takes
        it to zero or below stops the timer and still calls ``handler``.
        """
        budget = _seconds(total)
        if budget < 0:
            if self._config.strict:
                raise ValueError(f"total must be >= 0, got {budget}")
            budget = 0.0
        step = self._positive(repeating, "repeating")
        ref = weakref.ref(self)

        with self._lock:
            if not self._can_activate():
                return
            self._generation += 1
            generation = self._generation

            def tick() -> None:
                timer = ref()
                if timer is None or not timer._spend(step, generation):
                    return
                handler()

            self._remaining = budget
            source = self._ensure_source()
            source.set_handler(tick)
            source.schedule(self._executor.time(), step)
            self._activate()
            logger.debug("Countdown started, total=%s repeating=%s", budget, step)

    def _spend(self, step: float, generation: int) -> bool:
        """Take one step off the budget. False if the tick should be dropped."""
        with self._lock:
            if self._state is not TimerState.RUNNING or generation != self._generation:
                return False
            self._remaining -= step
            if self._remaining <= 0:
                assert self._source is not None
                self._source.cancel()
                self._state = TimerState.STOPPED
                logger.debug("Countdown finished, remaining=%s", self._remaining)
            return True

    # --- Delay ---

    def after(self, delay: float | timedelta, handler: Handler) -> None:
        """Run ``handler`` once after ``delay``. Cannot be cancelled."""
        seconds = _seconds(delay)
        if seconds < 0:
            if self._config.strict:
                raise ValueError(f"delay must be >= 0, got {seconds}")
            seconds = 0.0
        self._executor.call_later(seconds, handler)

    # --- Internal ---

    def _positive(self, value: float | timedelta, name: str) -> float:
        seconds = _seconds(value)
        if seconds > 0:
            return seconds
        if self._config.strict:
            raise ValueError(f"{name} must be positive, got {seconds}")
        return self._config.min_interval

    def _can_activate(self) -> bool:
        if self._state is not TimerState.STOPPED:
            return True
        if not self._config.allow_rearm:
            logger.debug("Timer is stopped, ignoring activation")
            return False
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        self._source = None
        self._state = TimerState.IDLE
        return True

    def _ensure_source(self) -> TimerSource:
        if self._source is None:
            self._source = TimerSource(self._executor)
            self._finalizer = weakref.finalize(self, self._source.cancel)
        return self._source

    def _activate(self) -> None:
        assert self._source is not None
        if self._state is not TimerState.RUNNING:
            self._source.resume()
            self._state = TimerState.RUNNING
