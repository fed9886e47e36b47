"""Prometheus metrics exporter for the load generator.

Bridges recorded samples into Prometheus format so a long run can be
watched live. Fed through an aggregator listener; the HTTP endpoint is
only started when metrics exposition is enabled in settings.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from .samples import RequestSample

logger = logging.getLogger(__name__)

# Use a separate registry to avoid default Python metrics
REGISTRY = CollectorRegistry()

# --- Counters (cumulative values) ---

loadgen_http_reqs_total = Counter(
    "loadgen_http_reqs_total",
    "Total requests by scenario and outcome",
    ["scenario", "outcome"],
    registry=REGISTRY,
)

loadgen_checks_total = Counter(
    "loadgen_checks_total",
    "Total check evaluations by scenario, check and result",
    ["scenario", "check", "result"],
    registry=REGISTRY,
)

loadgen_iterations_total = Counter(
    "loadgen_iterations_total",
    "Total completed workload iterations",
    ["scenario"],
    registry=REGISTRY,
)

# --- Gauges (point-in-time values) ---

loadgen_active_vus = Gauge(
    "loadgen_active_vus",
    "Number of virtual-user threads currently running",
    ["scenario"],
    registry=REGISTRY,
)

# --- Histograms (latency distributions) ---

HTTP_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, float("inf"))

loadgen_http_req_duration_seconds = Histogram(
    "loadgen_http_req_duration_seconds",
    "Request latency in seconds (responses only)",
    ["scenario"],
    buckets=HTTP_LATENCY_BUCKETS,
    registry=REGISTRY,
)


def observe_sample(sample: RequestSample) -> None:
    """Aggregator listener: export one recorded sample."""
    loadgen_http_reqs_total.labels(scenario=sample.scenario, outcome=sample.outcome.value).inc()
    if sample.has_response:
        loadgen_http_req_duration_seconds.labels(scenario=sample.scenario).observe(
            sample.latency_ms / 1000.0
        )
    for result in sample.check_results:
        loadgen_checks_total.labels(
            scenario=sample.scenario,
            check=result.name,
            result="pass" if result.passed else "fail",
        ).inc()


def record_iteration(scenario: str) -> None:
    loadgen_iterations_total.labels(scenario=scenario).inc()


def vu_started(scenario: str) -> None:
    loadgen_active_vus.labels(scenario=scenario).inc()


def vu_stopped(scenario: str) -> None:
    loadgen_active_vus.labels(scenario=scenario).dec()


def start_metrics_server(port: int) -> None:
    """Serve REGISTRY on ``port`` from a daemon thread."""
    start_http_server(port, registry=REGISTRY)
    logger.info("Prometheus metrics exposed on port %d", port)


def get_metrics_output() -> bytes:
    """Generate Prometheus text format output."""
    return generate_latest(REGISTRY)
