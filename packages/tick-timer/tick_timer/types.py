"""Shared types, protocols and exceptions for tick-timer."""
from __future__ import annotations

from enum import Enum
from typing import Callable, Protocol, runtime_checkable

Handler = Callable[[], None]


class TimerState(Enum):
    """Lifecycle of a Timer. STOPPED is terminal."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class TimerError(Exception):
    """Base class for tick-timer errors."""


class SuspendBalanceError(TimerError):
    """Raised when a TimerSource is resumed more often than it was suspended."""

    def __init__(self, suspend_count: int, message: str) -> None:
        self.suspend_count = suspend_count
        super().__init__(message)


@runtime_checkable
class Handle(Protocol):
    """A pending call on an executor."""

    def cancel(self) -> None:
        ...

    def cancelled(self) -> bool:
        ...


@runtime_checkable
class Executor(Protocol):
    """Execution context that timer callbacks run on.

    Implementations must never let a callback exception escape into the
    scheduling machinery; they log it and carry on.
    """

    def time(self) -> float:
        """Monotonic executor clock in seconds."""
        ...

    def call_at(self, when: float, fn: Handler) -> Handle:
        """Run ``fn`` once at executor time ``when``."""
        ...

    def call_later(self, delay: float, fn: Handler) -> Handle:
        """Run ``fn`` once after ``delay`` seconds."""
        ...
