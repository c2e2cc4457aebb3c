"""
Error taxonomy.

Typed exceptions with retry classification, plus HTTP status mapping.
"""

from cspark.errors.exceptions import (
    AuthenticationError,
    ConfigurationError,
    JobFailedError,
    NetworkError,
    SparkError,
    TimeoutError,
    ValidationError,
)
from cspark.errors.status import (
    RETRYABLE_STATUSES,
    BadRequestError,
    ConflictError,
    ForbiddenError,
    GatewayTimeoutError,
    HttpStatusError,
    InternalServerError,
    NotFoundError,
    RateLimitError,
    ServerError,
    ServiceUnavailableError,
    UnauthorizedError,
    UnprocessableEntityError,
    UnsupportedMediaTypeError,
    classify_http_status,
)

__all__ = [
    # Base
    "SparkError",
    "ConfigurationError",
    "ValidationError",
    "AuthenticationError",
    "NetworkError",
    "TimeoutError",
    "JobFailedError",
    # HTTP
    "HttpStatusError",
    "BadRequestError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "UnsupportedMediaTypeError",
    "UnprocessableEntityError",
    "RateLimitError",
    "ServerError",
    "InternalServerError",
    "ServiceUnavailableError",
    "GatewayTimeoutError",
    "RETRYABLE_STATUSES",
    "classify_http_status",
]
