"""Scenario registry populated before a run starts."""

from __future__ import annotations

import logging
from collections.abc import Iterator

from loadgen.core.exceptions import ConfigError, DuplicateNameError

from .scenario import Scenario

logger = logging.getLogger(__name__)


class ScenarioRegistry:
    """Ordered, name-unique collection of scenarios.

    Mutable only until the runner freezes it at run start.
    """

    def __init__(self) -> None:
        self._scenarios: dict[str, Scenario] = {}
        self._frozen = False

    def register(self, scenario: Scenario) -> None:
        if self._frozen:
            raise ConfigError(
                f"Cannot register {scenario.name!r}: registry is frozen",
                {"scenario": scenario.name},
            )
        if scenario.name in self._scenarios:
            raise DuplicateNameError(
                f"Scenario {scenario.name!r} is already registered",
                {"scenario": scenario.name},
            )
        self._scenarios[scenario.name] = scenario
        logger.debug(
            "Registered scenario %s (%s, %d VUs, %.1fs)",
            scenario.name,
            scenario.executor_kind.value,
            scenario.concurrency,
            scenario.duration,
        )

    def all(self) -> tuple[Scenario, ...]:
        """Scenarios in registration order."""
        return tuple(self._scenarios.values())

    def get(self, name: str) -> Scenario:
        try:
            return self._scenarios[name]
        except KeyError:
            raise ConfigError(f"Unknown scenario {name!r}", {"scenario": name}) from None

    def names(self) -> tuple[str, ...]:
        return tuple(self._scenarios)

    def validate(self) -> None:
        if not self._scenarios:
            raise ConfigError("No scenarios registered")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return len(self._scenarios)

    def __contains__(self, name: object) -> bool:
        return name in self._scenarios

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self.all())
