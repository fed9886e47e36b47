"""Request execution: wire requests, latency measurement, checks and retries."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING

import httpx

from loadgen.core.exceptions import CheckFailure, TransportError
from loadgen.core.retry import RetryConfig, with_retry_sync
from loadgen.metrics.samples import CheckResult, RequestSample, SampleOutcome, outcome_for_status
from loadgen.workloads.base import Check, RequestSpec

if TYPE_CHECKING:
    from loadgen.engine.virtual_user import VirtualUser
    from loadgen.metrics.aggregator import MetricsAggregator
    from loadgen.settings import HTTPSettings

logger = logging.getLogger(__name__)

SampleSink = Callable[[RequestSample], None]


class _Abandoned(Exception):
    """The request was settled by an abort before the next attempt."""


class PendingSample:
    """Exactly-once delivery slot for one request's sample.

    Request completion and pool abort race to settle the slot; the first
    caller delivers its sample to the sink, the other is discarded.
    Delivery happens under the slot lock, so a caller that loses the race
    returns only after the winner's sample has been recorded.
    """

    def __init__(
        self,
        sink: SampleSink,
        *,
        scenario: str,
        name: str,
        method: str,
        url: str,
        vu_id: int | None = None,
    ) -> None:
        self._sink = sink
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._sample: RequestSample | None = None
        self._started = time.perf_counter()
        self.scenario = scenario
        self.name = name
        self.method = method
        self.url = url
        self.vu_id = vu_id

    @property
    def settled(self) -> bool:
        return self._settled.is_set()

    @property
    def sample(self) -> RequestSample | None:
        """The delivered sample, whichever side won."""
        return self._sample

    def wait(self, timeout: float | None = None) -> bool:
        return self._settled.wait(timeout)

    def settle(self, sample: RequestSample) -> bool:
        """Deliver ``sample`` unless the slot was already settled."""
        with self._lock:
            if self._settled.is_set():
                return False
            self._sample = sample
            try:
                self._sink(sample)
            finally:
                self._settled.set()
            return True

    def abort(self, reason: str = "aborted after grace period") -> bool:
        return self.settle(
            RequestSample(
                scenario=self.scenario,
                name=self.name,
                method=self.method,
                url=self.url,
                outcome=SampleOutcome.ABORTED,
                latency_ms=(time.perf_counter() - self._started) * 1000.0,
                error=reason,
                vu_id=self.vu_id,
            )
        )


def evaluate_checks(checks: Iterable[Check], response: httpx.Response) -> tuple[CheckResult, ...]:
    """Apply every check; a raising predicate counts as failed."""
    results = []
    for check in checks:
        try:
            results.append(CheckResult(name=check.label, passed=bool(check.predicate(response))))
        except Exception as e:
            failure = CheckFailure(
                f"Check {check.label!r} raised {type(e).__name__}: {e}", {"check": check.label}
            )
            logger.debug("%s", failure.message, exc_info=True)
            results.append(CheckResult(name=check.label, passed=False, error=failure.message))
    return tuple(results)


def join_url(base_url: str, url: str) -> str:
    """Resolve a request URL against the base URL.

    An empty URL targets the base URL exactly (no trailing slash).
    """
    if url.startswith(("http://", "https://")):
        return url
    if not url:
        return base_url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


class RequestExecutor:
    """Sends RequestSpecs for virtual users and reports one sample per request."""

    def __init__(
        self,
        aggregator: MetricsAggregator,
        base_url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 60.0,
        retry_config: RetryConfig | None = None,
        client_factory: Callable[[], httpx.Client] | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._base_url = base_url.rstrip("/")
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._retry_config = retry_config
        self._client_factory = client_factory

    @classmethod
    def from_settings(
        cls,
        aggregator: MetricsAggregator,
        settings: HTTPSettings,
        *,
        base_url: str | None = None,
        headers: Mapping[str, str] | None = None,
        client_factory: Callable[[], httpx.Client] | None = None,
    ) -> RequestExecutor:
        retry_config = None
        if settings.max_retries > 0:
            retry_config = RetryConfig(
                max_attempts=settings.max_retries + 1,
                base_delay=settings.retry_base_delay,
                multiplier=settings.retry_multiplier,
                retryable_exceptions=(TransportError,),
            )
        return cls(
            aggregator,
            base_url or settings.base_url,
            headers=headers,
            timeout=settings.request_timeout_seconds,
            retry_config=retry_config,
            client_factory=client_factory,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def create_client(self) -> httpx.Client:
        """HTTP client for one virtual user."""
        if self._client_factory is not None:
            return self._client_factory()
        return httpx.Client(timeout=self._timeout)

    def execute(self, request: RequestSpec, vu: VirtualUser) -> RequestSample | None:
        """Send one request and record its sample exactly once.

        Returns the recorded sample (possibly an abort that won the race),
        or None when the VU was already aborted and nothing was sent.
        """
        url = join_url(self._base_url, request.url)
        method = request.method.upper()
        pending = PendingSample(
            self._aggregator.record,
            scenario=vu.scenario,
            name=request.display_name,
            method=method,
            url=url,
            vu_id=vu.id,
        )
        if not vu.begin_request(pending):
            logger.debug("VU %d is closed, not sending %s", vu.id, request.display_name)
            return None

        try:
            sample = self._perform(request, method, url, vu, pending)
            if sample is not None and not pending.settle(sample):
                logger.debug("Late completion of %s discarded after abort", request.display_name)
        except Exception:
            # The abort closed the client under the request.
            if pending.sample is None or pending.sample.outcome is not SampleOutcome.ABORTED:
                raise
            logger.debug("%s torn down after abort", request.display_name, exc_info=True)
        finally:
            vu.end_request(pending)
        return pending.sample

    def _perform(
        self,
        request: RequestSpec,
        method: str,
        url: str,
        vu: VirtualUser,
        pending: PendingSample,
    ) -> RequestSample | None:
        headers = {**self._headers, **request.headers}
        attempts = 0

        def send() -> tuple[httpx.Response, float]:
            nonlocal attempts
            if pending.settled:
                raise _Abandoned()
            attempts += 1
            started = time.perf_counter()
            try:
                response = vu.client.request(method, url, json=request.json, headers=headers)
            except httpx.TransportError as e:
                raise TransportError(
                    f"{method} {url} failed: {e}",
                    {"url": url, "error_type": type(e).__name__},
                ) from e
            return response, (time.perf_counter() - started) * 1000.0

        started = time.perf_counter()
        try:
            if self._retry_config is None:
                response, latency_ms = send()
            else:
                response, latency_ms = with_retry_sync(
                    send,
                    self._retry_config,
                    operation_name=request.display_name,
                    sleep=pending.wait,
                )
        except _Abandoned:
            return None
        except TransportError as e:
            logger.debug("Transport error on %s: %s", request.display_name, e.message)
            return RequestSample(
                scenario=vu.scenario,
                name=request.display_name,
                method=method,
                url=url,
                outcome=SampleOutcome.TRANSPORT_ERROR,
                latency_ms=(time.perf_counter() - started) * 1000.0,
                check_results=tuple(CheckResult(c.label, False) for c in request.checks),
                attempts=attempts,
                error=e.message,
                vu_id=vu.id,
            )

        return RequestSample(
            scenario=vu.scenario,
            name=request.display_name,
            method=method,
            url=url,
            outcome=outcome_for_status(response.status_code),
            status_code=response.status_code,
            latency_ms=latency_ms,
            check_results=evaluate_checks(request.checks, response),
            attempts=attempts,
            vu_id=vu.id,
        )
