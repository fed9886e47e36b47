"""Run clock and scenario scheduling windows."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .scenario import Scenario


class Clock(Protocol):
    """Source of monotonic time in seconds."""

    def now(self) -> float: ...


class MonotonicClock:
    """Wall clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class RunClock:
    """Tracks elapsed time since an explicit start."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or MonotonicClock()
        self._started_at: float | None = None
        self._lock = threading.Lock()

    def start(self) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock.now()

    @property
    def started(self) -> bool:
        return self._started_at is not None

    def now(self) -> float:
        return self._clock.now()

    def elapsed(self) -> float:
        """Seconds since start(); 0.0 before the clock is started."""
        if self._started_at is None:
            return 0.0
        return max(0.0, self._clock.now() - self._started_at)


@dataclass(frozen=True)
class ScenarioWindow:
    """Offsets, relative to run start, at which a scenario runs and drains."""

    name: str
    start_offset: float
    end_offset: float
    grace_period: float

    @classmethod
    def for_scenario(cls, scenario: Scenario, default_grace: float) -> ScenarioWindow:
        grace = scenario.graceful_stop if scenario.graceful_stop is not None else default_grace
        return cls(
            name=scenario.name,
            start_offset=scenario.start_time,
            end_offset=scenario.start_time + scenario.duration,
            grace_period=grace,
        )

    @property
    def drain_deadline(self) -> float:
        return self.end_offset + self.grace_period

    def has_started(self, elapsed: float) -> bool:
        return elapsed >= self.start_offset

    def has_ended(self, elapsed: float) -> bool:
        return elapsed >= self.end_offset
