"""
Core types shared across the SDK.

Kept dependency-free so that every sub-package can import from here without
creating import cycles.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for retry decisions.

    Categories:
        TRANSIENT: Temporary failures that should retry with backoff
                   (e.g., connection resets, 429/5xx responses)
        AUTH: Credential failures (e.g., 401, token exchange failures)
        PERMANENT: Failures that will not succeed on retry
                   (e.g., 400/403/404/422, invalid configuration)
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


__all__ = [
    "ErrorCategory",
    "HttpMethod",
]
