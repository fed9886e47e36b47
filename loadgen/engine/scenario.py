"""Scenario definitions with tagged executor variants."""

from __future__ import annotations

import dataclasses
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar

from loadgen.core.exceptions import ConfigError
from loadgen.workloads.base import Workload

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


class ExecutorKind(str, Enum):
    """How many virtual users a scenario runs over time."""

    CONSTANT_VUS = "constant-vus"
    RAMPING_VUS = "ramping-vus"


@dataclass(frozen=True)
class ConstantVUs:
    """A fixed number of VUs looping for a fixed duration."""

    vus: int
    duration: float

    kind: ClassVar[ExecutorKind] = ExecutorKind.CONSTANT_VUS

    def __post_init__(self) -> None:
        if self.vus <= 0:
            raise ConfigError(f"constant-vus requires vus > 0, got {self.vus}", {"vus": self.vus})
        if self.duration <= 0:
            raise ConfigError(
                f"constant-vus requires duration > 0, got {self.duration}",
                {"duration": self.duration},
            )

    @property
    def max_vus(self) -> int:
        return self.vus

    @property
    def total_duration(self) -> float:
        return self.duration

    def target_vus(self, elapsed: float) -> int:
        return self.vus if elapsed < self.duration else 0

    def scaled(self, factor: float) -> ConstantVUs:
        return dataclasses.replace(self, duration=self.duration * factor)


@dataclass(frozen=True)
class Stage:
    """One ramp segment: move linearly to ``target`` VUs over ``duration`` seconds."""

    duration: float
    target: int

    def __post_init__(self) -> None:
        if self.duration <= 0:
            raise ConfigError(f"Stage duration must be > 0, got {self.duration}")
        if self.target < 0:
            raise ConfigError(f"Stage target must be >= 0, got {self.target}")


@dataclass(frozen=True)
class RampingVUs:
    """A variable number of VUs following a list of stages."""

    stages: tuple[Stage, ...]
    start_vus: int = 0

    kind: ClassVar[ExecutorKind] = ExecutorKind.RAMPING_VUS

    def __post_init__(self) -> None:
        if not self.stages:
            raise ConfigError("ramping-vus requires at least one stage")
        if self.start_vus < 0:
            raise ConfigError(f"start_vus must be >= 0, got {self.start_vus}")
        if self.max_vus <= 0:
            raise ConfigError("ramping-vus never reaches a positive VU target")

    @property
    def max_vus(self) -> int:
        return max(self.start_vus, *(stage.target for stage in self.stages))

    @property
    def total_duration(self) -> float:
        return sum(stage.duration for stage in self.stages)

    def target_vus(self, elapsed: float) -> int:
        """Linear interpolation of the VU target at ``elapsed`` seconds into the scenario."""
        previous = self.start_vus
        remaining = elapsed
        for stage in self.stages:
            if remaining < stage.duration:
                progress = remaining / stage.duration
                return int(round(previous + (stage.target - previous) * progress))
            remaining -= stage.duration
            previous = stage.target
        return 0

    def scaled(self, factor: float) -> RampingVUs:
        stages = tuple(Stage(duration=s.duration * factor, target=s.target) for s in self.stages)
        return dataclasses.replace(self, stages=stages)


ExecutorConfig = ConstantVUs | RampingVUs


@dataclass(frozen=True, eq=False)
class Scenario:
    """A named, independently scheduled workload profile."""

    name: str
    executor: ExecutorConfig
    workload: Workload
    pacing: float = 1.0
    start_time: float = 0.0
    graceful_stop: float | None = None
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name or not _NAME_PATTERN.match(self.name):
            raise ConfigError(
                f"Invalid scenario name {self.name!r}: use letters, digits, '_' or '-'"
            )
        if not callable(self.workload):
            raise ConfigError(f"Scenario {self.name!r} workload is not callable")
        if self.pacing < 0:
            raise ConfigError(f"Scenario {self.name!r} pacing must be >= 0")
        if self.start_time < 0:
            raise ConfigError(f"Scenario {self.name!r} start_time must be >= 0")
        if self.graceful_stop is not None and self.graceful_stop < 0:
            raise ConfigError(f"Scenario {self.name!r} graceful_stop must be >= 0")

    @property
    def executor_kind(self) -> ExecutorKind:
        return self.executor.kind

    @property
    def concurrency(self) -> int:
        """Largest number of VUs the scenario ever runs."""
        return self.executor.max_vus

    @property
    def duration(self) -> float:
        return self.executor.total_duration

    def scaled(self, factor: float) -> Scenario:
        """Copy with every duration (not pacing) multiplied by ``factor``."""
        if factor <= 0:
            raise ConfigError(f"Duration scale must be > 0, got {factor}")
        return dataclasses.replace(self, executor=self.executor.scaled(factor))
