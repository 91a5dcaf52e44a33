"""Timer configuration dataclass."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TimerConfig:
    """Immutable configuration for a Timer.

    Attributes:
        strict: Reject non-positive intervals with ValueError. When False,
            they are raised to ``min_interval`` instead.
        min_interval: Interval floor in seconds used when ``strict`` is False.
            Keeps a zero interval from spinning the executor.
        allow_rearm: Let ``start``/``countdown`` after ``stop`` build a fresh
            source instead of being no-ops.
    """

    strict: bool = True
    min_interval: float = 0.001
    allow_rearm: bool = False

    def __post_init__(self) -> None:
        if self.min_interval <= 0:
            raise ValueError(f"min_interval must be > 0, got {self.min_interval}")
