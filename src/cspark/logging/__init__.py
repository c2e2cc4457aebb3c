"""
Logging for the Spark SDK.

Provides:
    - SparkLogger capability and the stdlib-backed StdLogger adapter
    - JSON and console formatters
    - Context variables (request id, tenant, job id) injected into records
"""

from cspark.logging.adapter import (
    DEFAULT_LOGGER_NAME,
    SparkLogger,
    StdLogger,
    as_spark_logger,
)
from cspark.logging.context import clear_log_context, get_log_context, set_log_context
from cspark.logging.formatters import ConsoleFormatter, JSONFormatter
from cspark.logging.setup import get_logger, setup_logging

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "SparkLogger",
    "StdLogger",
    "as_spark_logger",
    "set_log_context",
    "get_log_context",
    "clear_log_context",
    "JSONFormatter",
    "ConsoleFormatter",
    "setup_logging",
    "get_logger",
]
