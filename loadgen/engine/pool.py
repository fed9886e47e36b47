"""Virtual-user pool: one thread per VU, driven by the scenario's executor policy."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING

from loadgen.core.exceptions import StartupError
from loadgen.harness_logging import log_vu_context
from loadgen.metrics import prometheus_exporter

from .clock import RunClock, ScenarioWindow
from .scenario import Scenario
from .virtual_user import VirtualUser

if TYPE_CHECKING:
    from loadgen.http.executor import RequestExecutor
    from loadgen.metrics.aggregator import MetricsAggregator

logger = logging.getLogger(__name__)

ThreadFactory = Callable[..., threading.Thread]


class VirtualUserPool:
    """Runs ``scenario.concurrency`` virtual users for one scenario window.

    Each VU loops ``workload -> requests -> iteration -> pacing`` while the
    executor policy keeps it active. All waits use the pool's stop event,
    so ``stop()`` is observed immediately and no new request is issued
    after it.
    """

    def __init__(
        self,
        scenario: Scenario,
        executor: RequestExecutor,
        aggregator: MetricsAggregator,
        *,
        run_clock: RunClock | None = None,
        grace_period: float = 30.0,
        tick: float = 0.05,
        thread_factory: ThreadFactory = threading.Thread,
    ) -> None:
        self._scenario = scenario
        self._executor = executor
        self._aggregator = aggregator
        self._clock = run_clock or RunClock()
        self._window = ScenarioWindow.for_scenario(scenario, grace_period)
        self._tick = tick
        self._thread_factory = thread_factory
        self._stop_event = threading.Event()
        self._stopped_at: float | None = None
        self._vus: list[VirtualUser] = []
        self._threads: list[threading.Thread] = []

    @property
    def scenario(self) -> Scenario:
        return self._scenario

    @property
    def window(self) -> ScenarioWindow:
        return self._window

    @property
    def vus(self) -> tuple[VirtualUser, ...]:
        return tuple(self._vus)

    def scenario_elapsed(self) -> float:
        """Seconds since the scenario's start offset."""
        return max(0.0, self._clock.elapsed() - self._window.start_offset)

    @property
    def window_closed(self) -> bool:
        return self._window.has_ended(self._clock.elapsed())

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def drain_deadline(self) -> float:
        """Run-clock offset after which in-flight requests are aborted."""
        deadline = self._window.drain_deadline
        if self._stopped_at is not None:
            deadline = min(deadline, self._stopped_at + self._window.grace_period)
        return deadline

    @property
    def active_vus(self) -> int:
        return sum(1 for t in self._threads if t.is_alive())

    @property
    def finished(self) -> bool:
        return all(not t.is_alive() for t in self._threads)

    def start(self, first_vu_id: int = 1) -> int:
        """Spawn one thread per VU. Returns the next free VU id.

        Raises:
            StartupError: a thread could not be started; VUs already
                started are stopped before raising.
        """
        self._clock.start()
        name = self._scenario.name
        for index in range(self._scenario.concurrency):
            vu = VirtualUser(
                id=first_vu_id + index,
                index=index,
                scenario=name,
                client=self._executor.create_client(),
            )
            try:
                thread = self._thread_factory(
                    target=self._run_vu,
                    args=(vu,),
                    name=f"vu-{name}-{vu.id}",
                    daemon=True,
                )
                thread.start()
            except (RuntimeError, OSError) as e:
                vu.client.close()
                self.stop()
                raise StartupError(
                    f"Could not start VU {vu.id} for scenario {name!r}: {e}",
                    {"scenario": name, "vu_id": vu.id, "started": len(self._threads)},
                ) from e
            self._vus.append(vu)
            self._threads.append(thread)

        logger.info(
            "Scenario %s started: %d VUs (%s)",
            name,
            len(self._threads),
            self._scenario.executor_kind.value,
        )
        return first_vu_id + self._scenario.concurrency

    def stop(self) -> None:
        """Stop issuing requests. In-flight requests keep their grace period."""
        if self._stopped_at is None:
            self._stopped_at = self._clock.elapsed()
        self._stop_event.set()

    def wait_finished(self, timeout: float | None = None) -> bool:
        """Join VU threads for at most ``timeout`` seconds in total."""
        deadline = None if timeout is None else self._clock.now() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - self._clock.now())
            thread.join(remaining)
        return self.finished

    def abort_in_flight(self) -> int:
        """Abort every in-flight request; each is recorded once as aborted."""
        self.stop()
        return sum(1 for vu in self._vus if vu.abort_in_flight())

    def _run_vu(self, vu: VirtualUser) -> None:
        name = self._scenario.name
        prometheus_exporter.vu_started(name)
        try:
            with log_vu_context(name, vu.id):
                logger.debug("VU %d started", vu.id)
                self._loop(vu)
                logger.debug("VU %d finished after %d iterations", vu.id, vu.iteration)
        finally:
            vu.client.close()
            prometheus_exporter.vu_stopped(name)

    def _loop(self, vu: VirtualUser) -> None:
        executor_config = self._scenario.executor
        duration = self._scenario.duration
        while not self._stop_event.is_set():
            elapsed = self.scenario_elapsed()
            if elapsed >= duration:
                break
            if vu.index >= executor_config.target_vus(elapsed):
                self._stop_event.wait(self._tick)
                continue

            self._iterate(vu)

            remaining = duration - self.scenario_elapsed()
            if remaining > 0:
                self._stop_event.wait(min(self._scenario.pacing, remaining))

    def _iterate(self, vu: VirtualUser) -> None:
        name = self._scenario.name
        try:
            for request in self._scenario.workload(vu):
                if self._stop_event.is_set() or vu.closed:
                    return
                if self.scenario_elapsed() >= self._scenario.duration:
                    logger.debug(
                        "Window closed mid-iteration %d, skipping %s",
                        vu.iteration,
                        request.display_name,
                    )
                    return
                self._executor.execute(request, vu)
        except Exception:
            logger.exception("Workload %s raised during iteration %d", name, vu.iteration)
            return
        if vu.closed:
            return

        vu.iteration += 1
        if self._aggregator.record_iteration(name):
            prometheus_exporter.record_iteration(name)

