"""Shared fixtures: mock target API, executors, virtual users, clocks."""

import threading
from collections.abc import Callable

import httpx
import pytest

from loadgen.engine.virtual_user import VirtualUser
from loadgen.harness_logging import LogContext
from loadgen.http.executor import RequestExecutor
from loadgen.metrics.aggregator import MetricsAggregator
from loadgen.metrics.samples import CheckResult, RequestSample, SampleOutcome

BASE_URL = "http://orders.test/api/orders"

Handler = Callable[[httpx.Request], httpx.Response]


class ManualClock:
    """Clock whose time only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> float:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self._now += seconds


def created_handler(request: httpx.Request) -> httpx.Response:
    """Mimics the order service: 201 with a confirmation body."""
    return httpx.Response(
        201,
        json={"status": "accepted", "message": "Order received", "orderId": "order-1"},
    )


@pytest.fixture(autouse=True)
def clear_log_context():
    """Thread-local log context must not leak between tests."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def manual_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def aggregator() -> MetricsAggregator:
    return MetricsAggregator()


@pytest.fixture
def make_executor(aggregator):
    """Factory for executors whose VU clients talk to an in-process handler."""

    def _make(handler: Handler = created_handler, **kwargs) -> RequestExecutor:
        kwargs.setdefault("headers", {"Content-Type": "application/json"})
        return RequestExecutor(
            kwargs.pop("aggregator", aggregator),
            kwargs.pop("base_url", BASE_URL),
            client_factory=lambda: httpx.Client(transport=httpx.MockTransport(handler)),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_vu():
    """Factory for a virtual user bound to an in-process handler."""
    created = []

    def _make(
        handler: Handler = created_handler,
        *,
        vu_id: int = 1,
        index: int = 0,
        scenario: str = "regular_orders",
    ) -> VirtualUser:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        created.append(client)
        return VirtualUser(id=vu_id, index=index, scenario=scenario, client=client)

    yield _make
    for client in created:
        client.close()


@pytest.fixture
def make_sample():
    """Factory for RequestSample with sensible defaults."""

    def _make(
        scenario: str = "regular_orders",
        outcome: SampleOutcome = SampleOutcome.SUCCESS,
        status_code: int | None = 201,
        latency_ms: float = 10.0,
        checks: dict[str, bool] | None = None,
        **kwargs,
    ) -> RequestSample:
        if outcome in (SampleOutcome.TRANSPORT_ERROR, SampleOutcome.ABORTED):
            status_code = None
        return RequestSample(
            scenario=scenario,
            name=kwargs.pop("name", "POST /api/orders"),
            method=kwargs.pop("method", "POST"),
            url=kwargs.pop("url", BASE_URL),
            outcome=outcome,
            status_code=status_code,
            latency_ms=latency_ms,
            check_results=tuple(CheckResult(k, v) for k, v in (checks or {}).items()),
            **kwargs,
        )

    return _make
