"""Samples, aggregation, thresholds and Prometheus exposition."""

from .aggregator import AggregateSnapshot, CheckStats, MetricsAggregator, ScenarioStats
from .samples import CheckResult, RequestSample, SampleOutcome, outcome_for_status
from .thresholds import (
    Threshold,
    ThresholdResult,
    evaluate_thresholds,
    parse_threshold,
    parse_thresholds,
    validate_thresholds,
)

__all__ = [
    "AggregateSnapshot",
    "CheckResult",
    "CheckStats",
    "MetricsAggregator",
    "RequestSample",
    "SampleOutcome",
    "ScenarioStats",
    "Threshold",
    "ThresholdResult",
    "evaluate_thresholds",
    "outcome_for_status",
    "parse_threshold",
    "parse_thresholds",
    "validate_thresholds",
]
