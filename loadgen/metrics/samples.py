"""Immutable per-request sample records."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum


class SampleOutcome(str, Enum):
    """How a single request ended."""

    SUCCESS = "success"
    FAILURE = "failure"
    TRANSPORT_ERROR = "transport_error"
    ABORTED = "aborted"


# k6 treats 200-399 as expected statuses for http_req_failed.
EXPECTED_STATUS_LOW = 200
EXPECTED_STATUS_HIGH = 400


def outcome_for_status(status_code: int) -> SampleOutcome:
    if EXPECTED_STATUS_LOW <= status_code < EXPECTED_STATUS_HIGH:
        return SampleOutcome.SUCCESS
    return SampleOutcome.FAILURE


@dataclass(frozen=True)
class CheckResult:
    """Result of one check against one response."""

    name: str
    passed: bool
    error: str | None = None


@dataclass(frozen=True)
class RequestSample:
    """Everything recorded about one request. Owned by the aggregator once emitted."""

    scenario: str
    name: str
    method: str
    url: str
    outcome: SampleOutcome
    status_code: int | None = None
    latency_ms: float = 0.0
    check_results: tuple[CheckResult, ...] = ()
    attempts: int = 1
    error: str | None = None
    vu_id: int | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def has_response(self) -> bool:
        return self.outcome in (SampleOutcome.SUCCESS, SampleOutcome.FAILURE)
