"""HTTP request execution."""

from .executor import PendingSample, RequestExecutor, evaluate_checks, join_url

__all__ = ["PendingSample", "RequestExecutor", "evaluate_checks", "join_url"]
