"""Thread-safe aggregation of request samples across scenarios."""

from __future__ import annotations

import logging
import threading
from collections import Counter, defaultdict
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING

import numpy as np

from .samples import RequestSample, SampleOutcome

if TYPE_CHECKING:
    from .thresholds import Threshold, ThresholdResult

logger = logging.getLogger(__name__)

SampleListener = Callable[[RequestSample], None]


@dataclass(frozen=True)
class CheckStats:
    """Pass/fail counts for one check label."""

    passes: int = 0
    fails: int = 0

    @property
    def total(self) -> int:
        return self.passes + self.fails

    @property
    def pass_rate(self) -> float | None:
        return self.passes / self.total if self.total else None


@dataclass(frozen=True)
class ScenarioStats:
    """Frozen statistics for one scenario (or the whole run)."""

    name: str
    requests: int = 0
    successes: int = 0
    failures: int = 0
    aborts: int = 0
    transport_errors: int = 0
    iterations: int = 0
    latencies_ms: tuple[float, ...] = ()
    status_codes: Mapping[int, int] = field(default_factory=dict)
    checks: Mapping[str, CheckStats] = field(default_factory=dict)
    elapsed_seconds: float = 0.0

    @cached_property
    def _latency_array(self) -> np.ndarray:
        return np.asarray(self.latencies_ms, dtype=float)

    @property
    def failed(self) -> int:
        """Requests counted by http_req_failed (HTTP errors, transport errors, aborts)."""
        return self.failures + self.aborts

    @property
    def failure_rate(self) -> float | None:
        return self.failed / self.requests if self.requests else None

    @property
    def check_passes(self) -> int:
        return sum(c.passes for c in self.checks.values())

    @property
    def check_fails(self) -> int:
        return sum(c.fails for c in self.checks.values())

    @property
    def check_pass_rate(self) -> float | None:
        total = self.check_passes + self.check_fails
        return self.check_passes / total if total else None

    @property
    def request_rate(self) -> float | None:
        if self.elapsed_seconds <= 0:
            return None
        return self.requests / self.elapsed_seconds

    @property
    def iteration_rate(self) -> float | None:
        if self.elapsed_seconds <= 0:
            return None
        return self.iterations / self.elapsed_seconds

    def percentile(self, p: float) -> float | None:
        """Latency percentile in ms (linear interpolation), None without data."""
        if not 0 <= p <= 100:
            raise ValueError(f"Percentile must be within [0, 100], got {p}")
        if not self.latencies_ms:
            return None
        return float(np.percentile(self._latency_array, p))

    @property
    def avg(self) -> float | None:
        return float(np.mean(self._latency_array)) if self.latencies_ms else None

    @property
    def min(self) -> float | None:
        return self.latencies_ms[0] if self.latencies_ms else None

    @property
    def max(self) -> float | None:
        return self.latencies_ms[-1] if self.latencies_ms else None

    @property
    def med(self) -> float | None:
        return self.percentile(50)


@dataclass(frozen=True)
class AggregateSnapshot:
    """Immutable view of the aggregated state at the end of a run."""

    scenarios: Mapping[str, ScenarioStats]
    total: ScenarioStats
    elapsed_seconds: float

    def for_scenario(self, name: str | None) -> ScenarioStats:
        """Stats for ``name``, the run total for None, empty stats when unseen."""
        if name is None:
            return self.total
        return self.scenarios.get(
            name, ScenarioStats(name=name, elapsed_seconds=self.elapsed_seconds)
        )


class _Bucket:
    """Mutable accumulation for one scenario, guarded by its own lock."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.lock = threading.Lock()
        self.outcomes: Counter[SampleOutcome] = Counter()
        self.latencies_ms: list[float] = []
        self.status_codes: Counter[int] = Counter()
        self.checks: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        self.iterations = 0

    def add(self, sample: RequestSample) -> None:
        with self.lock:
            self.outcomes[sample.outcome] += 1
            if sample.status_code is not None:
                self.status_codes[sample.status_code] += 1
            if sample.has_response:
                self.latencies_ms.append(sample.latency_ms)
            for result in sample.check_results:
                self.checks[result.name][0 if result.passed else 1] += 1

    def add_iteration(self) -> None:
        with self.lock:
            self.iterations += 1

    def to_stats(self, elapsed_seconds: float) -> ScenarioStats:
        with self.lock:
            transport_errors = self.outcomes[SampleOutcome.TRANSPORT_ERROR]
            return ScenarioStats(
                name=self.name,
                requests=sum(self.outcomes.values()),
                successes=self.outcomes[SampleOutcome.SUCCESS],
                failures=self.outcomes[SampleOutcome.FAILURE] + transport_errors,
                aborts=self.outcomes[SampleOutcome.ABORTED],
                transport_errors=transport_errors,
                iterations=self.iterations,
                latencies_ms=tuple(sorted(self.latencies_ms)),
                status_codes=dict(self.status_codes),
                checks={label: CheckStats(p, f) for label, (p, f) in self.checks.items()},
                elapsed_seconds=elapsed_seconds,
            )


def merge_stats(
    name: str, parts: Iterable[ScenarioStats], elapsed_seconds: float
) -> ScenarioStats:
    """Combine several scenario stats into one."""
    parts = list(parts)
    status_codes: Counter[int] = Counter()
    checks: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for part in parts:
        status_codes.update(part.status_codes)
        for label, stats in part.checks.items():
            checks[label][0] += stats.passes
            checks[label][1] += stats.fails
    return ScenarioStats(
        name=name,
        requests=sum(p.requests for p in parts),
        successes=sum(p.successes for p in parts),
        failures=sum(p.failures for p in parts),
        aborts=sum(p.aborts for p in parts),
        transport_errors=sum(p.transport_errors for p in parts),
        iterations=sum(p.iterations for p in parts),
        latencies_ms=tuple(sorted(lat for p in parts for lat in p.latencies_ms)),
        status_codes=dict(status_codes),
        checks={label: CheckStats(p, f) for label, (p, f) in checks.items()},
        elapsed_seconds=elapsed_seconds,
    )


class MetricsAggregator:
    """Accumulates samples from every virtual user.

    The only state shared between VU threads. Each scenario has its own
    bucket and lock; totals are exact under concurrent writers.
    """

    TOTAL = "total"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, _Bucket] = {}
        self._listeners: list[SampleListener] = []
        self._snapshot: AggregateSnapshot | None = None

    def add_listener(self, listener: SampleListener) -> None:
        """Register a callback invoked with every recorded sample."""
        with self._lock:
            self._listeners.append(listener)

    def _bucket(self, scenario: str) -> _Bucket:
        bucket = self._buckets.get(scenario)
        if bucket is None:
            with self._lock:
                bucket = self._buckets.setdefault(scenario, _Bucket(scenario))
        return bucket

    @property
    def frozen(self) -> bool:
        return self._snapshot is not None

    def record(self, sample: RequestSample) -> None:
        """Accumulate one sample. Must be called exactly once per request."""
        if self._snapshot is not None:
            raise RuntimeError(f"Sample recorded after freeze: {sample.scenario}/{sample.name}")
        self._bucket(sample.scenario).add(sample)
        for listener in self._listeners:
            try:
                listener(sample)
            except Exception:
                logger.exception("Sample listener %r failed", listener)

    def record_iteration(self, scenario: str) -> bool:
        """Count one completed workload iteration. Ignored once frozen."""
        if self._snapshot is not None:
            logger.debug("Dropping late iteration for %s", scenario)
            return False
        self._bucket(scenario).add_iteration()
        return True

    def register_scenario(self, scenario: str) -> None:
        """Create an empty bucket so scenarios without samples still report."""
        self._bucket(scenario)

    def snapshot(self, elapsed_seconds: float = 0.0) -> AggregateSnapshot:
        """Point-in-time copy without freezing."""
        with self._lock:
            buckets = list(self._buckets.values())
        scenarios = {b.name: b.to_stats(elapsed_seconds) for b in buckets}
        total = merge_stats(self.TOTAL, scenarios.values(), elapsed_seconds)
        return AggregateSnapshot(
            scenarios=scenarios, total=total, elapsed_seconds=elapsed_seconds
        )

    def freeze(self, elapsed_seconds: float) -> AggregateSnapshot:
        """Take the final snapshot; further samples are rejected."""
        if self._snapshot is None:
            self._snapshot = self.snapshot(elapsed_seconds)
        return self._snapshot

    @property
    def final_snapshot(self) -> AggregateSnapshot:
        if self._snapshot is None:
            raise RuntimeError("Aggregator has not been frozen yet")
        return self._snapshot

    def evaluate(self, thresholds: Iterable[Threshold]) -> dict[Threshold, ThresholdResult]:
        """Evaluate thresholds against the frozen state. Pure read."""
        from .thresholds import evaluate_thresholds

        return evaluate_thresholds(self.final_snapshot, thresholds)
