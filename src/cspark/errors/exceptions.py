"""
Unified exception hierarchy for the Spark SDK.

Every error raised by the SDK derives from SparkError and carries a retry
classification, so the request executor, the job poller and the batch chunker
can decide what to retry without inspecting error messages.
"""

from typing import Any

from cspark.types import ErrorCategory


class SparkError(Exception):
    """
    Base exception for all SDK errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
        retries: Number of retries performed before the error surfaced
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        context: dict | None = None,
        retries: int = 0,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        self.retries = retries
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [f"{type(self).__name__}: {self.message}"]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for structured logging."""
        result: dict[str, Any] = {
            "name": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retries": self.retries,
        }
        if self.cause:
            result["cause"] = str(self.cause)
        if self.context:
            result["context"] = self.context
        return result


# =============================================================================
# Client-side errors (never retried)
# =============================================================================


class ConfigurationError(SparkError):
    """Invalid or missing settings. Fails fast."""

    category = ErrorCategory.PERMANENT


class ValidationError(ConfigurationError):
    """Malformed caller input (e.g., a non-absolute base URL)."""


# =============================================================================
# Authentication
# =============================================================================


class AuthenticationError(SparkError):
    """
    Credential exchange failed.

    Not retried by the executor's generic retry policy; the OAuth strategy
    makes at most one extra attempt as part of the refresh itself.
    """

    category = ErrorCategory.AUTH

    @property
    def is_retryable(self) -> bool:
        return False


# =============================================================================
# Transport errors
# =============================================================================


class NetworkError(SparkError):
    """Transport-level failure (connection refused/reset, DNS, etc.)."""

    category = ErrorCategory.TRANSIENT


class TimeoutError(SparkError):
    """Per-attempt timeout or job poll budget exceeded. Not retried further."""

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        message: str,
        timeout_seconds: float | None = None,
        cause: BaseException | None = None,
        context: dict | None = None,
        retries: int = 0,
    ):
        super().__init__(message, cause, context, retries)
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Job errors
# =============================================================================


class JobFailedError(SparkError):
    """A long-running job reached a failed or cancelled terminal state."""

    category = ErrorCategory.PERMANENT

    def __init__(
        self,
        message: str,
        job: Any = None,
        cause: BaseException | None = None,
        context: dict | None = None,
    ):
        super().__init__(message, cause, context)
        self.job = job


__all__ = [
    "SparkError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "NetworkError",
    "TimeoutError",
    "JobFailedError",
]
