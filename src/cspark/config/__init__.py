"""Configuration: base URL / URI resolution, Config, YAML and environment loading."""

from cspark.config.base_url import DEFAULT_API_VERSION, BaseUrl, Uri, UriParams, sanitize_path
from cspark.config.config import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_INTERVAL_SECONDS,
    DEFAULT_TIMEOUT_MS,
    Config,
    load_config,
)

__all__ = [
    "DEFAULT_API_VERSION",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_INTERVAL_SECONDS",
    "DEFAULT_TIMEOUT_MS",
    "BaseUrl",
    "Config",
    "Uri",
    "UriParams",
    "load_config",
    "sanitize_path",
]
