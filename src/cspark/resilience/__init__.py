"""Resilience patterns: retry with backoff."""

from cspark.resilience.retry import DEFAULT_RETRY, RetryPolicy, log_retry_attempt

__all__ = ["DEFAULT_RETRY", "RetryPolicy", "log_retry_attempt"]
