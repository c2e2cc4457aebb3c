"""Logging setup for applications embedding the SDK."""

import logging
import sys

from cspark.logging.adapter import DEFAULT_LOGGER_NAME
from cspark.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LEVEL = logging.INFO

# Noisy loggers to suppress
NOISY_LOGGERS = [
    "aiohttp",
    "aiohttp.access",
    "asyncio",
]


def setup_logging(
    level: int | str = DEFAULT_LEVEL,
    json_format: bool = False,
    suppress_noisy: bool = True,
    stream=None,
) -> logging.Logger:
    """
    Configure the ``cspark`` logger with a single stream handler.

    Only the SDK's own logger is touched; the root logger and the host
    application's handlers are left alone.

    Args:
        level: Log level name or number (default: INFO)
        json_format: Emit one JSON object per line instead of console text
        suppress_noisy: Raise aiohttp/asyncio loggers to WARNING
        stream: Output stream (default: stdout)

    Returns:
        The configured ``cspark`` logger
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = DEFAULT_LEVEL

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())

    logger = logging.getLogger(DEFAULT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.propagate = False

    if suppress_noisy:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(
        "Logging configured",
        extra={"operation": "setup_logging", "content_type": "json" if json_format else "console"},
    )
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the SDK namespace."""
    if name == DEFAULT_LOGGER_NAME or name.startswith(f"{DEFAULT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{DEFAULT_LOGGER_NAME}.{name}")


__all__ = ["setup_logging", "get_logger", "NOISY_LOGGERS"]
