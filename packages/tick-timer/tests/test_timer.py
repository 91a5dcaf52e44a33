"""Tests for Timer start/pause/restart/stop on a manual executor."""
from __future__ import annotations

import gc
from datetime import timedelta
from typing import Callable

import pytest
from tick_timer import ManualExecutor, Timer, TimerConfig, TimerState, main_executor


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture
def timer(executor: ManualExecutor) -> Timer:
    return Timer(executor)


def _recorder(executor: ManualExecutor) -> tuple[list[float], Callable[[], None]]:
    fired: list[float] = []
    return fired, lambda: fired.append(executor.time())


class TestConstruction:
    def test_initial_state(self, timer: Timer, executor: ManualExecutor) -> None:
        assert timer.state is TimerState.IDLE
        assert timer.remaining == 0.0
        assert timer.executor is executor
        assert timer.config == TimerConfig()

    def test_no_source_until_first_use(self, timer: Timer, executor: ManualExecutor) -> None:
        assert executor.pending() == 0
        timer.pause()
        timer.restart()
        assert timer.state is TimerState.IDLE
        assert executor.pending() == 0

    def test_default_executor_is_main(self) -> None:
        assert Timer().executor is main_executor()

    def test_default_floor_is_one_millisecond(self) -> None:
        assert TimerConfig().min_interval == 0.001

    @pytest.mark.parametrize("floor", [0, 0.0, -0.5])
    def test_config_rejects_non_positive_floor(self, floor) -> None:
        with pytest.raises(ValueError):
            TimerConfig(min_interval=floor)


class TestStart:
    def test_fires_immediately_then_every_interval(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        assert timer.state is TimerState.RUNNING
        executor.advance(3.0)
        assert fired == [0.0, 1.0, 2.0, 3.0]

    @pytest.mark.parametrize("interval", [2, 2.0, timedelta(seconds=2)])
    def test_interval_forms_are_equivalent(self, executor, interval) -> None:
        timer = Timer(executor)
        fired, handler = _recorder(executor)
        timer.start(interval, handler)
        executor.advance(6.0)
        assert fired == [0.0, 2.0, 4.0, 6.0]

    def test_fractional_interval(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(0.5, handler)
        executor.advance(2.0)
        assert fired == [0.0, 0.5, 1.0, 1.5, 2.0]

    def test_restart_replaces_schedule(self, timer, executor) -> None:
        first, h1 = _recorder(executor)
        second, h2 = _recorder(executor)
        timer.start(1, h1)
        executor.advance(1.5)
        timer.start(2, h2)
        executor.advance(4.0)
        assert first == [0.0, 1.0]
        assert second == [1.5, 3.5, 5.5]
        assert executor.pending() == 1

    def test_double_start_does_not_fault(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        timer.start(1, handler)
        executor.advance(1.0)
        assert fired == [0.0, 1.0]
        assert timer.state is TimerState.RUNNING

    @pytest.mark.parametrize("interval", [0, -1, 0.0, timedelta(0)])
    def test_rejects_non_positive_interval(self, timer, interval) -> None:
        with pytest.raises(ValueError):
            timer.start(interval, lambda: None)
        assert timer.state is TimerState.IDLE

    def test_rejects_non_numeric_interval(self, timer) -> None:
        with pytest.raises(TypeError):
            timer.start("1", lambda: None)  # type: ignore[arg-type]

    def test_lenient_config_floors_interval(self, executor) -> None:
        timer = Timer(executor, TimerConfig(strict=False, min_interval=0.25))
        fired, handler = _recorder(executor)
        timer.start(0, handler)
        executor.advance(1.0)
        assert fired == [0.0, 0.25, 0.5, 0.75, 1.0]

    def test_handler_exception_keeps_schedule(self, timer, executor) -> None:
        calls = []

        def flaky() -> None:
            calls.append(executor.time())
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        timer.start(1, flaky)
        executor.advance(2.0)
        assert calls == [0.0, 1.0, 2.0]


class TestPauseRestart:
    def test_pause_suspends_firing(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        executor.advance(1.5)
        timer.pause()
        assert timer.state is TimerState.PAUSED
        executor.advance(5.0)
        assert fired == [0.0, 1.0]

    def test_double_pause_is_noop(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        timer.pause()
        timer.pause()
        timer.restart()
        assert timer.state is TimerState.RUNNING
        executor.advance(1.0)
        assert fired == [0.0, 1.0]

    def test_restart_resumes_same_cadence(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(2, handler)
        executor.advance(0.5)
        timer.pause()
        executor.advance(1.0)
        timer.restart()
        executor.advance(4.5)
        assert fired == [0.0, 2.0, 4.0, 6.0]

    def test_restart_after_missed_ticks_fires_once_then_resumes_grid(
        self, timer, executor
    ) -> None:
        fired, handler = _recorder(executor)
        timer.start(2, handler)
        executor.advance(1.0)
        timer.pause()
        executor.advance(4.0)
        timer.restart()
        executor.advance(1.0)
        assert fired == [0.0, 5.0, 6.0]

    def test_restart_without_pause_is_noop(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        timer.restart()
        timer.restart()
        assert timer.state is TimerState.RUNNING
        executor.advance(1.0)
        assert fired == [0.0, 1.0]

    def test_start_while_paused_reconfigures_and_runs(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        executor.run_pending()
        timer.pause()
        executor.advance(2.0)
        timer.start(3, handler)
        assert timer.state is TimerState.RUNNING
        executor.advance(3.0)
        assert fired == [0.0, 2.0, 5.0]
        timer.pause()
        timer.restart()
        assert timer.state is TimerState.RUNNING


class TestStop:
    def test_stop_halts_firing(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        executor.advance(1.0)
        timer.stop()
        assert timer.state is TimerState.STOPPED
        executor.advance(5.0)
        assert fired == [0.0, 1.0]
        assert executor.pending() == 0

    def test_stop_is_idempotent(self, timer) -> None:
        timer.start(1, lambda: None)
        timer.stop()
        timer.stop()
        assert timer.state is TimerState.STOPPED

    def test_stop_before_use(self, timer, executor) -> None:
        timer.stop()
        assert timer.state is TimerState.STOPPED
        assert executor.pending() == 0

    def test_everything_is_noop_after_stop(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        timer.stop()
        timer.start(1, handler)
        timer.pause()
        timer.restart()
        timer.countdown(5, 1, handler)
        executor.advance(10.0)
        assert fired == []
        assert timer.state is TimerState.STOPPED

    def test_stop_while_paused(self, timer, executor) -> None:
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        timer.pause()
        timer.stop()
        timer.restart()
        executor.advance(3.0)
        assert fired == []
        assert timer.state is TimerState.STOPPED

    def test_rearm_when_allowed(self, executor) -> None:
        timer = Timer(executor, TimerConfig(allow_rearm=True))
        fired, handler = _recorder(executor)
        timer.start(1, handler)
        executor.advance(1.0)
        timer.stop()
        executor.advance(1.0)
        timer.start(1, handler)
        assert timer.state is TimerState.RUNNING
        executor.advance(1.0)
        assert fired == [0.0, 1.0, 2.0, 3.0]

    def test_rearm_detaches_previous_finalizers(self, executor) -> None:
        timer = Timer(executor, TimerConfig(allow_rearm=True))
        finalizers = []
        for _ in range(3):
            timer.start(1, lambda: None)
            finalizers.append(timer._finalizer)
            timer.stop()
        timer.start(1, lambda: None)
        assert not any(f.alive for f in finalizers)
        assert timer._finalizer is not None and timer._finalizer.alive

        del timer
        gc.collect()
        assert executor.pending() == 0


class TestRelease:
    def test_collected_timer_cancels_source(self, executor: ManualExecutor) -> None:
        fired: list[float] = []
        timer = Timer(executor)
        timer.start(1, lambda: fired.append(executor.time()))
        executor.advance(1.0)
        del timer
        gc.collect()
        assert executor.pending() == 0
        executor.advance(5.0)
        assert fired == [0.0, 1.0]
