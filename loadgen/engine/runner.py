"""Run lifecycle: scheduling, draining, evaluation and verdict."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

from loadgen.core.exceptions import LoadGenError, StartupError
from loadgen.metrics.aggregator import AggregateSnapshot, MetricsAggregator
from loadgen.metrics.thresholds import Threshold, ThresholdResult, validate_thresholds

from .clock import Clock, RunClock
from .pool import ThreadFactory, VirtualUserPool
from .registry import ScenarioRegistry
from .scenario import Scenario

if TYPE_CHECKING:
    from loadgen.http.executor import RequestExecutor

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    DRAINING = "draining"
    EVALUATING = "evaluating"
    DONE = "done"


class Verdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"


class ExitCode(IntEnum):
    """Process exit codes for a finished run."""

    PASSED = 0
    THRESHOLD_FAILED = 1
    CONFIG_ERROR = 2
    STARTUP_ERROR = 3
    INTERRUPTED = 4


VALID_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.STARTING},
    RunState.STARTING: {RunState.RUNNING, RunState.DONE},
    RunState.RUNNING: {RunState.DRAINING, RunState.DONE},
    RunState.DRAINING: {RunState.EVALUATING},
    RunState.EVALUATING: {RunState.DONE},
    RunState.DONE: set(),
}

StateListener = Callable[[RunState, RunState], None]


@dataclass(frozen=True)
class RunResult:
    verdict: Verdict
    snapshot: AggregateSnapshot
    threshold_results: dict[Threshold, ThresholdResult] = field(default_factory=dict)
    errors: tuple[LoadGenError, ...] = ()
    interrupted: bool = False

    @property
    def passed(self) -> bool:
        return self.verdict is Verdict.PASS

    @property
    def exit_code(self) -> ExitCode:
        if any(isinstance(e, StartupError) for e in self.errors):
            return ExitCode.STARTUP_ERROR
        if any(not r.passed for r in self.threshold_results.values()):
            return ExitCode.THRESHOLD_FAILED
        if self.interrupted:
            return ExitCode.INTERRUPTED
        return ExitCode.PASSED if self.passed else ExitCode.THRESHOLD_FAILED


class Runner:
    """Drives a whole run through IDLE -> STARTING -> RUNNING -> DRAINING
    -> EVALUATING -> DONE.

    The registry and thresholds are fixed when ``run()`` starts. ``cancel()``
    may be called from any thread (typically a signal handler).
    """

    def __init__(
        self,
        registry: ScenarioRegistry,
        thresholds: Iterable[Threshold],
        aggregator: MetricsAggregator,
        executor: RequestExecutor,
        *,
        grace_period: float = 30.0,
        tick: float = 0.05,
        clock: Clock | None = None,
        thread_factory: ThreadFactory = threading.Thread,
    ) -> None:
        self._registry = registry
        self._thresholds: Sequence[Threshold] = tuple(thresholds)
        self._aggregator = aggregator
        self._executor = executor
        self._grace_period = grace_period
        self._tick = tick
        self._run_clock = RunClock(clock)
        self._thread_factory = thread_factory

        self._state = RunState.IDLE
        self._state_lock = threading.Lock()
        self._listeners: list[StateListener] = []
        self._cancel_event = threading.Event()
        self._force_event = threading.Event()
        self._pools: dict[str, VirtualUserPool] = {}
        self._aborted: set[str] = set()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def pools(self) -> dict[str, VirtualUserPool]:
        return dict(self._pools)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def add_state_listener(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    def cancel(self, force: bool = False) -> None:
        """Stop the run early. ``force`` skips the grace period."""
        if force:
            logger.warning("Forced cancel requested: aborting in-flight requests")
            self._force_event.set()
        elif not self._cancel_event.is_set():
            logger.warning("Cancel requested: draining in-flight requests")
        self._cancel_event.set()

    def _transition(self, new_state: RunState) -> None:
        with self._state_lock:
            old_state = self._state
            if new_state not in VALID_TRANSITIONS[old_state]:
                raise RuntimeError(f"Invalid run state transition {old_state.value} -> {new_state.value}")
            self._state = new_state
        logger.info("Run state: %s -> %s", old_state.value, new_state.value)
        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    def _preflight(self) -> None:
        self._registry.validate()
        self._registry.freeze()
        validate_thresholds(self._thresholds, self._registry.names())

    def run(self) -> RunResult:
        """Execute the run to completion.

        Raises:
            ConfigError: the registry or thresholds are invalid; no traffic
                was sent.
        """
        if self._state is not RunState.IDLE:
            raise RuntimeError("A runner can only be run once")

        self._preflight()
        self._transition(RunState.STARTING)
        for scenario in self._registry:
            self._aggregator.register_scenario(scenario.name)

        self._run_clock.start()
        waiting = list(self._registry.all())
        logger.info(
            "Starting run: %d scenarios, %d thresholds",
            len(waiting),
            len(self._thresholds),
        )

        try:
            self._spawn_due(waiting)
        except StartupError as e:
            return self._fail_startup(e)
        self._transition(RunState.RUNNING)

        while not self._cancel_event.is_set():
            try:
                self._spawn_due(waiting)
            except StartupError as e:
                return self._fail_startup(e)
            self._enforce_windows()
            if not waiting and all(pool.window_closed for pool in self._pools.values()):
                break
            self._cancel_event.wait(self._tick)

        interrupted = self._cancel_event.is_set()
        self._transition(RunState.DRAINING)
        for pool in self._pools.values():
            pool.stop()
        self._drain()

        self._transition(RunState.EVALUATING)
        snapshot = self._aggregator.freeze(self._run_clock.elapsed())
        results = self._aggregator.evaluate(self._thresholds)
        failures = [r.to_failure() for r in results.values() if not r.passed]
        for failure in failures:
            logger.warning("%s", failure.message)

        verdict = Verdict.FAIL if failures or interrupted else Verdict.PASS
        result = RunResult(
            verdict=verdict,
            snapshot=snapshot,
            threshold_results=results,
            errors=tuple(failures),
            interrupted=interrupted,
        )
        self._transition(RunState.DONE)
        logger.info(
            "Run finished: %s (%d requests in %.1fs)",
            verdict.value,
            snapshot.total.requests,
            snapshot.elapsed_seconds,
        )
        return result

    def _next_vu_id(self) -> int:
        return 1 + sum(pool.scenario.concurrency for pool in self._pools.values())

    def _spawn_due(self, waiting: list[Scenario]) -> None:
        """Start every waiting scenario whose start offset has been reached."""
        elapsed = self._run_clock.elapsed()
        for scenario in list(waiting):
            if elapsed < scenario.start_time:
                continue
            waiting.remove(scenario)
            pool = VirtualUserPool(
                scenario,
                self._executor,
                self._aggregator,
                run_clock=self._run_clock,
                grace_period=self._grace_period,
                tick=self._tick,
                thread_factory=self._thread_factory,
            )
            first_vu_id = self._next_vu_id()
            self._pools[scenario.name] = pool
            pool.start(first_vu_id=first_vu_id)

    def _enforce_windows(self) -> None:
        """Stop pools whose window closed; abort those past their grace deadline."""
        elapsed = self._run_clock.elapsed()
        for name, pool in self._pools.items():
            if pool.window_closed and not pool.stopped:
                logger.info("Scenario %s window closed, draining", name)
                pool.stop()
            if name not in self._aborted and not pool.finished and elapsed >= pool.drain_deadline:
                self._abort_pool(name, pool)

    def _abort_pool(self, name: str, pool: VirtualUserPool) -> None:
        self._aborted.add(name)
        aborted = pool.abort_in_flight()
        logger.warning(
            "Scenario %s: grace period over, aborted %d in-flight requests",
            name,
            aborted,
        )

    def _drain(self) -> None:
        """Wait for pools to finish, aborting those past their grace deadline."""
        remaining = {name: pool for name, pool in self._pools.items() if name not in self._aborted}
        while remaining:
            elapsed = self._run_clock.elapsed()
            for name, pool in list(remaining.items()):
                if pool.finished:
                    logger.info("Scenario %s drained", name)
                    del remaining[name]
                elif self._force_event.is_set() or elapsed >= pool.drain_deadline:
                    self._abort_pool(name, pool)
                    del remaining[name]
            if remaining:
                self._force_event.wait(self._tick)

    def _fail_startup(self, error: StartupError) -> RunResult:
        logger.error("Startup failed: %s", error.message)
        for pool in self._pools.values():
            pool.abort_in_flight()
        snapshot = self._aggregator.freeze(self._run_clock.elapsed())
        self._transition(RunState.DONE)
        return RunResult(
            verdict=Verdict.FAIL,
            snapshot=snapshot,
            errors=(error,),
            interrupted=self._cancel_event.is_set(),
        )
