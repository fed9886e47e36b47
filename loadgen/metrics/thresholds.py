"""k6-style pass/fail thresholds over aggregated metrics.

A threshold is declared as a metric key plus an expression, for example::

    http_req_failed: ["rate<0.01"]
    http_req_duration{scenario:high_value_orders}: ["p(95)<500"]

Keys may carry a ``{scenario:<name>}`` filter; expressions follow
``<aggregation> <op> <number>[unit]``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loadgen.core.exceptions import ConfigError, ThresholdFailure

if TYPE_CHECKING:
    from .aggregator import AggregateSnapshot, ScenarioStats

_KEY_PATTERN = re.compile(r"^\s*(?P<metric>[a-z_]+)\s*(?:\{(?P<filter>[^}]*)\})?\s*$")
_EXPR_PATTERN = re.compile(
    r"^\s*(?P<aggregation>[a-z]+|p\(\s*(?P<pct>\d+(?:\.\d+)?)\s*\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)"
    r"\s*(?P<value>-?\d+(?:\.\d+)?)\s*(?P<unit>ms|s)?\s*$"
)

OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

TREND_AGGREGATIONS = frozenset({"avg", "min", "max", "med"})

# Metric name -> aggregations it supports; "p" stands for any p(N).
METRIC_AGGREGATIONS: dict[str, frozenset[str]] = {
    "http_reqs": frozenset({"count", "rate"}),
    "http_req_failed": frozenset({"rate"}),
    "http_req_duration": TREND_AGGREGATIONS | {"p"},
    "checks": frozenset({"rate"}),
    "iterations": frozenset({"count", "rate"}),
}

_UNIT_FACTORS = {"ms": 1.0, "s": 1000.0}


@dataclass(frozen=True)
class Threshold:
    metric: str
    aggregation: str
    operator: str
    value: float
    scenario: str | None = None
    percentile: float | None = None
    expression: str = ""

    @property
    def key(self) -> str:
        if self.scenario is None:
            return self.metric
        return f"{self.metric}{{scenario:{self.scenario}}}"

    def __str__(self) -> str:
        return f"{self.key}: {self.expression}"

    def observe(self, stats: ScenarioStats) -> float | None:
        """Read the aggregated value this threshold compares, None without data."""
        if self.metric == "checks":
            return stats.check_pass_rate
        if self.metric == "iterations":
            if not stats.iterations:
                return None
            return float(stats.iterations) if self.aggregation == "count" else stats.iteration_rate
        if not stats.requests:
            return None
        if self.metric == "http_reqs":
            return float(stats.requests) if self.aggregation == "count" else stats.request_rate
        if self.metric == "http_req_failed":
            return stats.failure_rate
        if self.percentile is not None:
            return stats.percentile(self.percentile)
        return getattr(stats, self.aggregation)

    def check(self, observed: float | None) -> bool:
        if observed is None:
            return False
        return OPERATORS[self.operator](observed, self.value)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: Threshold
    observed: float | None
    passed: bool

    def to_failure(self) -> ThresholdFailure:
        shown = "no data" if self.observed is None else f"{self.observed:.4g}"
        return ThresholdFailure(
            f"Threshold {self.threshold} not met (observed {shown})",
            {
                "metric": self.threshold.metric,
                "scenario": self.threshold.scenario,
                "expression": self.threshold.expression,
                "observed": self.observed,
            },
        )


def _parse_key(metric_key: str) -> tuple[str, str | None]:
    match = _KEY_PATTERN.match(metric_key)
    if not match:
        raise ConfigError(f"Malformed threshold metric {metric_key!r}", {"metric": metric_key})

    metric = match.group("metric")
    if metric not in METRIC_AGGREGATIONS:
        known = ", ".join(sorted(METRIC_AGGREGATIONS))
        raise ConfigError(f"Unknown metric {metric!r} (known: {known})", {"metric": metric})

    raw_filter = match.group("filter")
    if raw_filter is None:
        return metric, None
    tag, _, value = raw_filter.partition(":")
    if tag.strip() != "scenario" or not value.strip():
        raise ConfigError(
            f"Unsupported threshold filter {{{raw_filter}}}: only scenario:<name> is allowed",
            {"metric": metric_key},
        )
    return metric, value.strip()


def parse_threshold(metric_key: str, expression: str) -> Threshold:
    """Parse one metric key and expression pair into a Threshold."""
    metric, scenario = _parse_key(metric_key)

    match = _EXPR_PATTERN.match(expression)
    if not match:
        raise ConfigError(
            f"Malformed threshold expression {expression!r} for {metric_key}",
            {"metric": metric_key, "expression": expression},
        )

    pct = match.group("pct")
    aggregation = "p" if pct is not None else match.group("aggregation")
    if aggregation not in METRIC_AGGREGATIONS[metric]:
        raise ConfigError(
            f"Aggregation {match.group('aggregation')!r} is not valid for {metric}",
            {"metric": metric, "expression": expression},
        )

    percentile = float(pct) if pct is not None else None
    if percentile is not None and percentile > 100:
        raise ConfigError(f"Percentile out of range in {expression!r}")

    value = float(match.group("value"))
    unit = match.group("unit")
    if unit is not None:
        if metric != "http_req_duration":
            raise ConfigError(f"Units are only allowed on http_req_duration: {expression!r}")
        value *= _UNIT_FACTORS[unit]

    return Threshold(
        metric=metric,
        aggregation=match.group("aggregation").replace(" ", ""),
        operator=match.group("op"),
        value=value,
        scenario=scenario,
        percentile=percentile,
        expression=expression.strip(),
    )


def parse_thresholds(definitions: Mapping[str, Iterable[str]]) -> list[Threshold]:
    """Parse a ``{metric_key: [expression, ...]}`` mapping."""
    thresholds = []
    for metric_key, expressions in definitions.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            thresholds.append(parse_threshold(metric_key, expression))
    return thresholds


def validate_thresholds(thresholds: Iterable[Threshold], scenario_names: Collection[str]) -> None:
    """Reject thresholds whose scenario filter names no registered scenario."""
    for threshold in thresholds:
        if threshold.scenario is not None and threshold.scenario not in scenario_names:
            raise ConfigError(
                f"Threshold {threshold} refers to unknown scenario {threshold.scenario!r}",
                {"scenario": threshold.scenario},
            )


def evaluate_thresholds(
    snapshot: AggregateSnapshot, thresholds: Iterable[Threshold]
) -> dict[Threshold, ThresholdResult]:
    results = {}
    for threshold in thresholds:
        observed = threshold.observe(snapshot.for_scenario(threshold.scenario))
        results[threshold] = ThresholdResult(
            threshold=threshold, observed=observed, passed=threshold.check(observed)
        )
    return results
