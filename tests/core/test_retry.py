"""Tests for retry utilities."""

from unittest.mock import MagicMock

import pytest

from loadgen.core.exceptions import ConfigError, TransientError, TransportError
from loadgen.core.retry import RetryConfig, with_retry_sync


@pytest.mark.unit
@pytest.mark.critical
class TestRetryConfig:
    """Test RetryConfig defaults and customization."""

    def test_default_config(self):
        config = RetryConfig()
        assert config.max_attempts == 3
        assert config.base_delay == 0.5
        assert config.multiplier == 2.0
        assert config.max_delay == 30.0
        assert config.retryable_exceptions == (TransientError,)

    def test_custom_config(self):
        config = RetryConfig(max_attempts=5, base_delay=0.1, retryable_exceptions=(TransportError,))
        assert config.max_attempts == 5
        assert config.base_delay == 0.1
        assert config.retryable_exceptions == (TransportError,)


@pytest.mark.unit
@pytest.mark.critical
class TestWithRetrySync:
    """Test synchronous retry functionality."""

    def test_succeeds_on_first_attempt(self):
        operation = MagicMock(return_value="success")
        sleep = MagicMock()

        assert with_retry_sync(operation, sleep=sleep) == "success"
        assert operation.call_count == 1
        sleep.assert_not_called()

    def test_succeeds_after_transient_failures(self):
        """Operation succeeds after transport failures."""
        operation = MagicMock(side_effect=[TransportError("reset"), TransportError("reset"), "ok"])

        result = with_retry_sync(operation, RetryConfig(base_delay=0.01), sleep=lambda _: None)

        assert result == "ok"
        assert operation.call_count == 3

    def test_fails_after_max_attempts(self):
        operation = MagicMock(side_effect=TransportError("always fails"))

        with pytest.raises(TransportError, match="always fails"):
            with_retry_sync(operation, RetryConfig(max_attempts=2), sleep=lambda _: None)

        assert operation.call_count == 2

    def test_permanent_error_not_retried(self):
        operation = MagicMock(side_effect=ConfigError("invalid"))

        with pytest.raises(ConfigError):
            with_retry_sync(operation, sleep=lambda _: None)

        assert operation.call_count == 1

    def test_exponential_backoff_delays(self):
        """Delays grow by the multiplier and are capped at max_delay."""
        delays = []
        operation = MagicMock(side_effect=TransportError("fail"))
        config = RetryConfig(max_attempts=4, base_delay=1.0, multiplier=3.0, max_delay=5.0)

        with pytest.raises(TransportError):
            with_retry_sync(operation, config, sleep=delays.append)

        assert delays == [1.0, 3.0, 5.0]

    def test_on_retry_callback(self):
        on_retry = MagicMock()
        operation = MagicMock(side_effect=[TransportError("fail"), "ok"])

        with_retry_sync(operation, RetryConfig(base_delay=0.01), on_retry=on_retry, sleep=lambda _: None)

        on_retry.assert_called_once()
        error, attempt = on_retry.call_args[0]
        assert isinstance(error, TransportError)
        assert attempt == 0
