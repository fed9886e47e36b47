"""Error taxonomy and retry helpers."""

from .exceptions import (
    CheckFailure,
    ConfigError,
    DuplicateNameError,
    FatalError,
    LoadGenError,
    PermanentError,
    StartupError,
    ThresholdFailure,
    TransientError,
    TransportError,
)
from .retry import RetryConfig, with_retry_sync

__all__ = [
    "CheckFailure",
    "ConfigError",
    "DuplicateNameError",
    "FatalError",
    "LoadGenError",
    "PermanentError",
    "RetryConfig",
    "StartupError",
    "ThresholdFailure",
    "TransientError",
    "TransportError",
    "with_retry_sync",
]
