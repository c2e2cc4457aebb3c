"""Tests for cspark.resilience.retry module."""

from unittest.mock import MagicMock, patch

import pytest

from cspark.errors import (
    AuthenticationError,
    HttpStatusError,
    NetworkError,
    ValidationError,
)
from cspark.errors import TimeoutError as SparkTimeoutError
from cspark.resilience import DEFAULT_RETRY, RetryPolicy, log_retry_attempt


class TestRetryPolicy:
    """Tests for RetryPolicy configuration and delay calculation."""

    def test_defaults(self):
        assert DEFAULT_RETRY.max_retries == 2
        assert DEFAULT_RETRY.max_attempts == 3
        assert DEFAULT_RETRY.base_delay == 1.0

    def test_string_values_coerced(self):
        policy = RetryPolicy(max_retries="3", base_delay="0.5")
        assert policy.max_retries == 3
        assert policy.base_delay == 0.5

    def test_negative_values_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_retries=-1)
        with pytest.raises(ValueError):
            RetryPolicy(base_delay=-0.1)

    def test_exponential_backoff_without_jitter(self):
        policy = RetryPolicy(base_delay=1.0, jitter=False)

        assert policy.get_delay(0) == 1.0
        assert policy.get_delay(1) == 2.0
        assert policy.get_delay(2) == 4.0

    def test_delay_capped(self):
        policy = RetryPolicy(base_delay=10.0, max_delay=15.0, jitter=False)
        assert policy.get_delay(3) == 15.0

    def test_equal_jitter_bounds(self):
        policy = RetryPolicy(base_delay=4.0, jitter=True)
        for _ in range(50):
            delay = policy.get_delay(0)
            assert 2.0 <= delay <= 4.0

    def test_retry_after_honored(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0)
        error = HttpStatusError.from_status(429, "x", headers={"x-retry-after": "7"})
        assert policy.get_delay(0, error) == 7.0

    def test_retry_after_capped(self):
        policy = RetryPolicy(max_delay=5.0)
        error = HttpStatusError.from_status(429, "x", headers={"retry-after": "120"})
        assert policy.get_delay(0, error) == 5.0

    def test_retry_after_ignored_when_disabled(self):
        policy = RetryPolicy(base_delay=1.0, jitter=False, respect_retry_after=False)
        error = HttpStatusError.from_status(429, "x", headers={"retry-after": "9"})
        assert policy.get_delay(0, error) == 1.0


class TestShouldRetry:
    """Tests for RetryPolicy.should_retry classification."""

    @pytest.mark.parametrize(
        "error",
        [
            NetworkError("reset"),
            HttpStatusError.from_status(429, "x"),
            HttpStatusError.from_status(500, "x"),
            HttpStatusError.from_status(503, "x"),
        ],
    )
    def test_transient_errors_retried(self, error):
        assert RetryPolicy(max_retries=2).should_retry(error, 0)

    @pytest.mark.parametrize(
        "error",
        [
            HttpStatusError.from_status(400, "x"),
            HttpStatusError.from_status(401, "x"),
            HttpStatusError.from_status(404, "x"),
            AuthenticationError("x"),
            ValidationError("x"),
            SparkTimeoutError("x", timeout_seconds=1),
            ValueError("not an sdk error"),
        ],
    )
    def test_permanent_errors_not_retried(self, error):
        assert not RetryPolicy(max_retries=2).should_retry(error, 0)

    def test_stops_after_max_retries(self):
        policy = RetryPolicy(max_retries=2)
        error = NetworkError("reset")

        assert policy.should_retry(error, 0)
        assert policy.should_retry(error, 1)
        assert not policy.should_retry(error, 2)

    def test_zero_retries(self):
        assert not RetryPolicy(max_retries=0).should_retry(NetworkError("x"), 0)


class TestLogRetryAttempt:
    """Tests for the retry warning."""

    def test_writes_structured_fields(self):
        log = MagicMock()
        error = HttpStatusError.from_status(429, "x", headers={"retry-after": "1"})

        log_retry_attempt(log, "GET /x", 0, RetryPolicy(), 1.0, error)

        log.warn.assert_called_once()
        fields = log.warn.call_args.kwargs
        assert fields["attempt"] == 1
        assert fields["max_attempts"] == 3
        assert fields["delay_source"] == "server"
        assert fields["error_category"] == "transient"

    def test_falls_back_to_module_logger(self):
        with patch("cspark.resilience.retry.logger") as module_logger:
            log_retry_attempt(None, "GET /x", 1, RetryPolicy(), 2.0, NetworkError("reset"))

        message = module_logger.warning.call_args.args[0]
        assert message == "Retryable error for GET /x, will retry"
        assert module_logger.warning.call_args.kwargs["extra"]["attempt"] == 2
