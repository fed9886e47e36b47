"""Standardized exception hierarchy for the load generation harness."""

from typing import Any


class LoadGenError(Exception):
    """Base exception for all harness errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientError(LoadGenError):
    """Errors that may succeed on retry."""

    pass


class TransportError(TransientError):
    """A request failed at the network level (connect, read, timeout)."""

    pass


class PermanentError(LoadGenError):
    """Errors that will not succeed on retry."""

    pass


class ConfigError(PermanentError):
    """Invalid scenario, threshold or plan definition. Raised before any traffic."""

    pass


class DuplicateNameError(ConfigError):
    """A scenario with the same name is already registered."""

    pass


class FatalError(LoadGenError):
    """Critical errors that abort the whole run."""

    pass


class StartupError(FatalError):
    """Concurrency resources for a virtual-user pool could not be allocated."""

    pass


class CheckFailure(LoadGenError):
    """A response failed an observational check.

    Never raised during a run; instances describe failed checks in results.
    """

    pass


class ThresholdFailure(LoadGenError):
    """An aggregate metric violated its threshold at evaluation time.

    Carried in RunResult.errors, never raised while traffic is generated.
    """

    pass
