"""HTTP status errors and status-code classification."""

from typing import Any

from cspark.errors.exceptions import SparkError
from cspark.types import ErrorCategory

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 400:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT  # Client errors, won't fix with retry

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


class HttpStatusError(SparkError):
    """
    The platform answered with a 4xx/5xx status.

    Only 429 and 5xx are retryable. ``payload`` holds the decoded error body
    when it was JSON, ``raw`` the undecoded text.
    """

    default_details = "unknown error"

    def __init__(
        self,
        message: str,
        status: int,
        payload: Any = None,
        raw: str = "",
        headers: dict[str, str] | None = None,
        request_id: str = "",
        cause: BaseException | None = None,
        context: dict | None = None,
        retries: int = 0,
    ):
        super().__init__(message, cause, context, retries)
        self.status = status
        self.payload = payload
        self.raw = raw
        self.headers = headers or {}
        self.request_id = request_id

    @property
    def category(self) -> ErrorCategory:  # type: ignore[override]
        return classify_http_status(self.status)

    @property
    def is_retryable(self) -> bool:
        return self.status in RETRYABLE_STATUSES or self.status >= 500

    @property
    def details(self) -> str:
        if isinstance(self.payload, dict):
            error = self.payload.get("error") or self.payload.get("message")
            if isinstance(error, dict):
                error = error.get("message")
            if error:
                return str(error)
        return self.raw[:200] or self.default_details

    @property
    def retry_after(self) -> float | None:
        """Server-provided delay in seconds, if any."""
        for name in ("x-retry-after", "retry-after"):
            for key, value in self.headers.items():
                if key.lower() == name:
                    try:
                        return float(value)
                    except (TypeError, ValueError):
                        return None
        return None

    def __str__(self) -> str:
        return f"{type(self).__name__}: {self.status} {self.message} ({self.details})"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["status"] = self.status
        if self.request_id:
            result["request_id"] = self.request_id
        return result

    @classmethod
    def from_status(cls, status: int, message: str, **kwargs: Any) -> "HttpStatusError":
        """Build the status-specific subclass for ``status``."""
        error_class = _STATUS_MAP.get(status)
        if error_class is None:
            error_class = ServerError if status >= 500 else cls
        return error_class(message, status=status, **kwargs)


class BadRequestError(HttpStatusError):
    default_details = "bad request"


class UnauthorizedError(HttpStatusError):
    default_details = "access unauthorized"


class ForbiddenError(HttpStatusError):
    default_details = "permission denied"


class NotFoundError(HttpStatusError):
    default_details = "content not found"


class ConflictError(HttpStatusError):
    default_details = "resource conflict"


class UnsupportedMediaTypeError(HttpStatusError):
    default_details = "unsupported media type"


class UnprocessableEntityError(HttpStatusError):
    default_details = "unprocessable entity"


class RateLimitError(HttpStatusError):
    default_details = "rate limit exceeded"


class ServerError(HttpStatusError):
    default_details = "server error"


class InternalServerError(ServerError):
    default_details = "internal server error"


class ServiceUnavailableError(ServerError):
    default_details = "service unavailable"


class GatewayTimeoutError(ServerError):
    default_details = "gateway timeout"


_STATUS_MAP: dict[int, type[HttpStatusError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    415: UnsupportedMediaTypeError,
    422: UnprocessableEntityError,
    429: RateLimitError,
    500: InternalServerError,
    503: ServiceUnavailableError,
    504: GatewayTimeoutError,
}


__all__ = [
    "RETRYABLE_STATUSES",
    "classify_http_status",
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
]
