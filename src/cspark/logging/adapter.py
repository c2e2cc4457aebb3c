"""
Logger capability used by the SDK core.

The core never formats or ships log records itself. It calls ``log``,
``debug``, ``warn`` and ``error`` on whatever logger the caller configured,
passing a message plus structured keyword fields. Any object with those four
methods qualifies; no inheritance is required.
"""

import logging
from typing import Any, Protocol, runtime_checkable

from cspark.errors.exceptions import ConfigurationError

DEFAULT_LOGGER_NAME = "cspark"

_REQUIRED_METHODS = ("log", "debug", "warn", "error")

# Reserved LogRecord attribute names that cannot be used in extra dict
_RESERVED_LOG_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "asctime",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


@runtime_checkable
class SparkLogger(Protocol):
    """Capability interface the core logs through."""

    def log(self, message: str, /, **fields: Any) -> Any: ...

    def debug(self, message: str, /, **fields: Any) -> Any: ...

    def warn(self, message: str, /, **fields: Any) -> Any: ...

    def error(self, message: str, /, **fields: Any) -> Any: ...


class StdLogger:
    """
    Adapts a stdlib ``logging.Logger`` to the SparkLogger capability.

    ``log`` maps to INFO. Keyword fields are forwarded as ``extra`` so that
    JSONFormatter can emit them as structured fields.
    """

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        exc_info = fields.pop("exc_info", None)
        extra = {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}
        self._logger.log(level, message, exc_info=exc_info, extra=extra)

    def log(self, message: str, /, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def debug(self, message: str, /, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def warn(self, message: str, /, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, /, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def __repr__(self) -> str:
        return f"StdLogger({self._logger.name!r})"


def as_spark_logger(candidate: Any = None) -> SparkLogger:
    """
    Coerce ``candidate`` into a SparkLogger.

    Accepts None (default stdlib adapter), a ``logging.Logger`` (wrapped), or
    any object exposing ``log/debug/warn/error``.

    Raises:
        ConfigurationError: If the object lacks one of the required methods
    """
    if candidate is None:
        return StdLogger()
    if isinstance(candidate, logging.Logger):
        return StdLogger(candidate)

    missing = [m for m in _REQUIRED_METHODS if not callable(getattr(candidate, m, None))]
    if missing:
        raise ConfigurationError(
            f"logger must implement log/debug/warn/error; missing: {', '.join(missing)}",
            context={"logger_type": type(candidate).__name__},
        )
    return candidate


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "SparkLogger",
    "StdLogger",
    "as_spark_logger",
]
