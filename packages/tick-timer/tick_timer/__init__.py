"""tick-timer - Periodic, countdown and delayed timers over a pluggable executor."""
from __future__ import annotations

from tick_timer.config import TimerConfig
from tick_timer.executors import (
    AsyncioExecutor,
    ManualExecutor,
    ThreadExecutor,
    main_executor,
)
from tick_timer.source import TimerSource
from tick_timer.timer import Timer
from tick_timer.types import (
    Executor,
    Handle,
    Handler,
    SuspendBalanceError,
    TimerError,
    TimerState,
)

__all__ = [
    "AsyncioExecutor",
    "Executor",
    "Handle",
    "Handler",
    "ManualExecutor",
    "SuspendBalanceError",
    "ThreadExecutor",
    "Timer",
    "TimerConfig",
    "TimerError",
    "TimerSource",
    "TimerState",
    "main_executor",
]
