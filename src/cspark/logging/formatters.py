"""
Formatters for SDK log records.

JSONFormatter writes one object per line for log shippers; ConsoleFormatter
writes a compact line for terminals. Both pick up the request id, tenant and
job id from the logging context.
"""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any

from cspark.logging.context import get_log_context

# Structured fields copied from ``extra``; the value is the type to coerce to
STRUCTURED_FIELDS: dict[str, type | None] = {
    # request
    "http_method": None,
    "http_url": None,
    "http_status": int,
    "content_type": None,
    "duration_ms": float,
    "bytes_downloaded": int,
    # failures and retries
    "error": None,
    "error_type": None,
    "error_category": None,
    "attempt": int,
    "max_attempts": int,
    "retries": int,
    "delay_seconds": float,
    "delay_source": None,
    # credentials
    "auth_type": None,
    "token_url": None,
    "expires_in": float,
    # jobs
    "job_status": None,
    "poll_count": int,
    "elapsed_seconds": float,
    # batches
    "chunk_index": int,
    "chunk_size": int,
    "chunk_count": int,
    "records_submitted": int,
    "records_failed": int,
    "chunks_succeeded": int,
    "chunks_failed": int,
    # misc
    "operation": None,
    "interceptor": None,
    "resource": None,
}

URL_FIELDS = frozenset({"http_url", "token_url", "url"})

# Pre-signed URLs carry their credentials in the query string
_SECRET_QUERY = re.compile(
    r"([?&])(sig|signature|token|key|secret|password|auth|client_secret)=[^&#]*",
    re.IGNORECASE,
)


def redact_url(url: str) -> str:
    """Replace credential-bearing query values with ``[REDACTED]``."""
    return _SECRET_QUERY.sub(r"\1\2=[REDACTED]", url)


def _coerce(name: str, value: Any) -> Any:
    cast = STRUCTURED_FIELDS.get(name)
    if cast is not None:
        try:
            value = cast(value)
        except (TypeError, ValueError):
            return None
    if name in URL_FIELDS and isinstance(value, str):
        return redact_url(value)
    return value


def _utc_timestamp() -> str:
    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    The record's own ``request_id`` wins over the ambient context. DEBUG and
    ERROR records also carry ``file`` (``name.py:lineno``).
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": _utc_timestamp(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update({k: v for k, v in get_log_context().items() if v})

        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            entry["file"] = f"{record.filename}:{record.lineno}"

        for name in STRUCTURED_FIELDS:
            raw = getattr(record, name, None)
            if raw is None:
                continue
            value = _coerce(name, raw)
            if value is not None:
                entry[name] = value

        request_id = getattr(record, "request_id", None)
        if request_id:
            entry["request_id"] = request_id

        if record.exc_info:
            exc_type, exc, _ = record.exc_info
            entry["exception"] = {
                "type": getattr(exc_type, "__name__", None),
                "message": str(exc) if exc is not None else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    ``time - LEVEL - [tenant] [request] [job:id] message``

    Level names are colored only when stdout is a terminal.
    """

    LEVEL_STYLES = {
        "DEBUG": "36",
        "INFO": "32",
        "WARNING": "33",
        "ERROR": "31",
        "CRITICAL": "35",
    }

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.colorize = sys.stdout.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        style = self.LEVEL_STYLES.get(record.levelname)
        if not (self.colorize and style):
            return record.levelname
        return f"\033[{style}m{record.levelname}\033[0m"

    @staticmethod
    def _tags(record: logging.LogRecord) -> str:
        context = get_log_context()
        request_id = getattr(record, "request_id", None) or context["request_id"]
        tags = [
            f"[{context['tenant']}]" if context["tenant"] else "",
            f"[{request_id[:8]}]" if request_id else "",
            f"[job:{context['job_id'][:8]}]" if context["job_id"] else "",
        ]
        return " ".join(t for t in tags if t)

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        stamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        tags = self._tags(record)
        body = f"{tags} {message}" if tags else message
        return f"{stamp} - {self._level(record)} - {body}"


__all__ = ["JSONFormatter", "ConsoleFormatter", "redact_url", "STRUCTURED_FIELDS"]
