"""
Retry policy for outbound platform calls.

Uses the exception hierarchy to decide what to retry:
- Transient errors (429, 5xx, transport): retry with exponential backoff
- Everything else, including auth failures and timeouts: fail immediately

A 429 carrying ``x-retry-after`` (or ``retry-after``) is honored in place of
the computed backoff, capped at ``max_delay``.
"""

import logging
import random
from dataclasses import dataclass

from cspark.errors.exceptions import SparkError
from cspark.errors.status import HttpStatusError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry behavior for one logical call.

    ``max_retries`` counts retries, not attempts: a policy with
    ``max_retries=2`` makes at most three attempts.
    """

    max_retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True

    # If True, use the server's retry-after hint when present
    respect_retry_after: bool = True

    def __post_init__(self):
        # Frozen dataclass: coerce YAML/env strings via object.__setattr__
        object.__setattr__(self, "max_retries", int(self.max_retries))
        object.__setattr__(self, "base_delay", float(self.base_delay))
        object.__setattr__(self, "max_delay", float(self.max_delay))
        object.__setattr__(self, "exponential_base", float(self.exponential_base))
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must be >= 0, got {self.base_delay}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, attempt: int, error: Exception | None = None) -> float:
        """
        Calculate the delay before the next attempt.

        Uses equal jitter (half fixed, half random) when enabled.

        Args:
            attempt: 0-indexed attempt number that just failed
            error: The failure, checked for a retry-after hint

        Returns:
            Delay in seconds
        """
        if self.respect_retry_after and isinstance(error, HttpStatusError):
            retry_after = error.retry_after
            if retry_after is not None and retry_after >= 0:
                return min(retry_after, self.max_delay)

        delay = self.base_delay * (self.exponential_base**attempt)
        if self.jitter:
            delay = (delay / 2) + random.uniform(0, delay / 2)
        return min(delay, self.max_delay)

    def should_retry(self, error: Exception, attempt: int) -> bool:
        """
        Determine if ``error`` on 0-indexed ``attempt`` warrants another try.

        Only SparkError instances are classified; anything else is a
        programming error and propagates.
        """
        if attempt >= self.max_retries:
            return False
        if isinstance(error, SparkError):
            return error.is_retryable
        return False


def log_retry_attempt(
    log,
    operation: str,
    attempt: int,
    policy: RetryPolicy,
    delay: float,
    error: Exception,
) -> None:
    """
    Emit the retry-attempt warning with structured fields.

    Args:
        log: SparkLogger to write to (falls back to the module logger)
        operation: Name of the call being retried
        attempt: 0-indexed attempt that just failed
        policy: Active retry policy
        delay: Seconds until the next attempt
        error: The failure being retried
    """
    fields: dict[str, object] = {
        "operation": operation,
        "attempt": attempt + 1,
        "max_attempts": policy.max_attempts,
        "delay_seconds": round(delay, 2),
        "error": str(error)[:200],
        "error_type": type(error).__name__,
    }
    if isinstance(error, SparkError):
        fields["error_category"] = error.category.value
    if isinstance(error, HttpStatusError):
        fields["http_status"] = error.status

    server_delay = isinstance(error, HttpStatusError) and error.retry_after is not None
    if policy.respect_retry_after and server_delay:
        fields["delay_source"] = "server"
        message = f"Retryable error for {operation}, will retry (using server-provided delay)"
    else:
        fields["delay_source"] = "exponential_backoff"
        message = f"Retryable error for {operation}, will retry"

    if log is None:
        logger.warning(message, extra=fields)
    else:
        log.warn(message, **fields)


DEFAULT_RETRY = RetryPolicy()


__all__ = [
    "RetryPolicy",
    "DEFAULT_RETRY",
    "log_retry_attempt",
]
