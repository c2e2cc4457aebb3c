"""
Client configuration.

Config is an immutable value. ``Config.create`` resolves it from keyword
arguments and the environment; ``copy_with`` derives a modified copy and never
touches the original; ``load_config`` reads it from a YAML file.

Environment variables:
    CSPARK_BASE_URL, CSPARK_TENANT_NAME, CSPARK_ENVIRONMENT,
    CSPARK_API_KEY, CSPARK_BEARER_TOKEN,
    CSPARK_CLIENT_ID, CSPARK_CLIENT_SECRET, CSPARK_OAUTH_PATH
"""

import dataclasses
import logging
import os
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from cspark.auth.strategies import AuthStrategy, OAuthClientCredentials, resolve_auth
from cspark.config.base_url import BaseUrl
from cspark.errors.exceptions import ConfigurationError
from cspark.http.interceptors import InterceptorRegistry
from cspark.logging.adapter import SparkLogger, StdLogger, as_spark_logger
from cspark.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_MAX_RETRIES = 2
DEFAULT_RETRY_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_RETRY_DELAY_SECONDS = 30.0

ENV_BASE_URL = "CSPARK_BASE_URL"
ENV_TENANT_NAME = "CSPARK_TENANT_NAME"
ENV_ENVIRONMENT = "CSPARK_ENVIRONMENT"
ENV_API_KEY = "CSPARK_API_KEY"
ENV_BEARER_TOKEN = "CSPARK_BEARER_TOKEN"
ENV_CLIENT_ID = "CSPARK_CLIENT_ID"
ENV_CLIENT_SECRET = "CSPARK_CLIENT_SECRET"
ENV_OAUTH_PATH = "CSPARK_OAUTH_PATH"

# Options that select or build the auth strategy
_CREDENTIAL_OPTIONS = (
    "api_key",
    "token",
    "oauth",
    "client_id",
    "client_secret",
    "oauth_path",
    "token_url",
)

# Options merged into existing OAuth credentials by copy_with
_OAUTH_PARTS = frozenset({"client_id", "client_secret", "token_url"})

# Options that build the base URL
_BASE_URL_OPTIONS = ("base_url", "tenant", "env")


# =============================================================================
# YAML loading
# =============================================================================


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        raise ConfigurationError(f"config file not found: {path}", context={"path": str(path)})
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {path}", cause=e) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    return data


_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-(([^}]*))?)?\}")


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    if isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    if isinstance(data, str):

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return _ENV_VAR_PATTERN.sub(replacer, data)
    return data


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}", cause=e) from e


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}", cause=e) from e


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _as_bool(value: Any) -> bool:
    # bool("false") would be True
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


# =============================================================================
# Config
# =============================================================================


@dataclass(frozen=True, repr=False, eq=False)
class Config:
    """
    Immutable configuration shared by every resource of one client.

    Attributes:
        base_url: Platform origin plus tenant
        auth: Credential strategy attached to every request
        timeout_ms: Per-attempt timeout in milliseconds
        max_retries: Retries after the first attempt for retryable failures
        retry_interval_seconds: Base delay between retries
        retry_jitter: Randomize retry delays (equal jitter)
        interceptors: Ordered, append-only interceptor registry
        logger: Logger capability (log/debug/warn/error)
        extra_headers: Headers sent with every request
        environment: Platform environment name, when known
    """

    base_url: BaseUrl
    auth: AuthStrategy
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_interval_seconds: float = DEFAULT_RETRY_INTERVAL_SECONDS
    retry_jitter: bool = True
    interceptors: InterceptorRegistry = field(default_factory=InterceptorRegistry)
    logger: SparkLogger = field(default_factory=StdLogger)
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    environment: str | None = None

    def __post_init__(self):
        if not isinstance(self.base_url, BaseUrl):
            raise ConfigurationError("base_url must be a BaseUrl")
        if not isinstance(self.auth, AuthStrategy):
            raise ConfigurationError(
                "a resolvable auth strategy is required",
                context={"auth_type": type(self.auth).__name__},
            )
        if not _is_int(self.timeout_ms) or self.timeout_ms <= 0:
            raise ConfigurationError(
                f"timeout_ms must be a positive integer, got {self.timeout_ms!r}"
            )
        if not _is_int(self.max_retries) or self.max_retries < 0:
            raise ConfigurationError(f"max_retries must be >= 0, got {self.max_retries!r}")
        if (
            isinstance(self.retry_interval_seconds, bool)
            or not isinstance(self.retry_interval_seconds, (int, float))
            or self.retry_interval_seconds < 0
        ):
            raise ConfigurationError(
                f"retry_interval_seconds must be >= 0, got {self.retry_interval_seconds!r}"
            )

        # Frozen dataclass: normalize through object.__setattr__
        interceptors = self.interceptors
        if not isinstance(interceptors, InterceptorRegistry):
            interceptors = InterceptorRegistry(interceptors or ())
        headers = {str(k): str(v) for k, v in dict(self.extra_headers or {}).items()}
        object.__setattr__(self, "interceptors", interceptors)
        object.__setattr__(self, "logger", as_spark_logger(self.logger))
        object.__setattr__(self, "extra_headers", MappingProxyType(headers))

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        base_url: str | BaseUrl | None = None,
        tenant: str | None = None,
        env: str | None = None,
        api_key: str | None = None,
        token: str | None = None,
        oauth: Any = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        oauth_path: str | Path | None = None,
        token_url: str | None = None,
        auth: AuthStrategy | None = None,
        timeout_ms: int | str = DEFAULT_TIMEOUT_MS,
        max_retries: int | str = DEFAULT_MAX_RETRIES,
        retry_interval_seconds: float | str = DEFAULT_RETRY_INTERVAL_SECONDS,
        retry_jitter: bool | str = True,
        interceptors: Iterable[Any] = (),
        logger: Any = None,
        extra_headers: Mapping[str, str] | None = None,
        read_env: bool = True,
    ) -> "Config":
        """
        Resolve a Config from explicit options, falling back to the environment.

        Auth precedence is API key > bearer token > OAuth; an explicit
        ``auth`` strategy wins over all of them.

        Raises:
            ConfigurationError: On missing tenant/credentials or invalid values
            ValidationError: If ``base_url`` is not an absolute URL
        """
        if read_env:
            base_url = base_url or os.getenv(ENV_BASE_URL)
            tenant = tenant or os.getenv(ENV_TENANT_NAME)
            env = env or os.getenv(ENV_ENVIRONMENT)
            has_credentials = (
                api_key or token or oauth or (client_id and client_secret) or oauth_path
            )
            if auth is None and not has_credentials:
                api_key = os.getenv(ENV_API_KEY)
                token = os.getenv(ENV_BEARER_TOKEN)
                client_id = os.getenv(ENV_CLIENT_ID)
                client_secret = os.getenv(ENV_CLIENT_SECRET)
                oauth_path = os.getenv(ENV_OAUTH_PATH)

        resolved_base = (
            base_url
            if isinstance(base_url, BaseUrl)
            else BaseUrl.from_options(url=base_url, tenant=tenant, env=env)
        )
        resolved_auth = auth or resolve_auth(
            api_key=api_key,
            token=token,
            oauth=oauth,
            client_id=client_id,
            client_secret=client_secret,
            oauth_path=oauth_path,
            token_url=token_url,
        )

        return cls(
            base_url=resolved_base,
            auth=resolved_auth,
            timeout_ms=_as_int("timeout_ms", timeout_ms),
            max_retries=_as_int("max_retries", max_retries),
            retry_interval_seconds=_as_float("retry_interval_seconds", retry_interval_seconds),
            retry_jitter=_as_bool(retry_jitter),
            interceptors=InterceptorRegistry(interceptors),
            logger=logger,
            extra_headers=dict(extra_headers or {}),
            environment=env.strip().lower() if env else None,
        )

    def copy_with(self, **overrides: Any) -> "Config":
        """
        Derive a new Config. The original is never mutated.

        Accepts any Config field, plus the credential options of ``create``
        (``api_key``, ``token``, ``oauth``, ``client_id``, ...) and the base
        URL options (``base_url`` as a string, ``tenant``, ``env``).
        Interceptors are copied by value; later registrations on either Config
        do not leak into the other.

        Raises:
            ConfigurationError: On unknown options or invalid values
        """
        field_names = {f.name for f in dataclasses.fields(self)}
        known = field_names | set(_CREDENTIAL_OPTIONS) | set(_BASE_URL_OPTIONS)
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"unknown config options: {', '.join(sorted(unknown))}")

        changes: dict[str, Any] = {k: v for k, v in overrides.items() if k in field_names}

        credentials = {k: overrides[k] for k in _CREDENTIAL_OPTIONS if overrides.get(k)}
        if credentials and "auth" not in changes:
            auth = self.auth
            if isinstance(auth, OAuthClientCredentials) and set(credentials) <= _OAUTH_PARTS:
                changes["auth"] = auth.replace(**credentials)
            else:
                changes["auth"] = resolve_auth(**credentials)

        url = overrides.get("base_url")
        tenant = overrides.get("tenant")
        env = overrides.get("env")
        if isinstance(url, str) or tenant or env:
            changes["base_url"] = BaseUrl.from_options(
                url=url if isinstance(url, str) else (None if env else self.base_url.value),
                tenant=tenant or self.base_url.tenant,
                env=env or self.environment,
            )
            if env:
                changes["environment"] = env.strip().lower()

        interceptors = changes.get("interceptors", self.interceptors)
        changes["interceptors"] = (
            interceptors.copy()
            if isinstance(interceptors, InterceptorRegistry)
            else InterceptorRegistry(interceptors)
        )
        if "extra_headers" in changes:
            changes["extra_headers"] = dict(changes["extra_headers"] or {})

        return dataclasses.replace(self, **changes)

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay=self.retry_interval_seconds,
            max_delay=max(DEFAULT_MAX_RETRY_DELAY_SECONDS, self.retry_interval_seconds),
            jitter=self.retry_jitter,
        )

    def add_interceptors(self, *interceptors: Any) -> "Config":
        self.interceptors.add(*interceptors)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Secrets masked; safe for logging."""
        return {
            "base_url": self.base_url.full,
            "auth": self.auth.kind,
            "credential": self.auth.masked,
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
            "retry_interval_seconds": self.retry_interval_seconds,
            "interceptors": len(self.interceptors),
            "extra_headers": sorted(self.extra_headers),
        }

    def __repr__(self) -> str:
        return (
            f"Config(base_url={self.base_url.full!r}, auth={self.auth!r}, "
            f"timeout_ms={self.timeout_ms}, max_retries={self.max_retries}, "
            f"retry_interval_seconds={self.retry_interval_seconds})"
        )

    __str__ = __repr__


_YAML_OPTIONS = frozenset(
    {
        "base_url",
        "tenant",
        "env",
        "api_key",
        "token",
        "client_id",
        "client_secret",
        "oauth_path",
        "token_url",
        "timeout_ms",
        "max_retries",
        "retry_interval_seconds",
        "retry_jitter",
        "extra_headers",
    }
)


def _is_unset(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and (not value or bool(_ENV_VAR_PATTERN.fullmatch(value)))


def load_config(path: str | Path, section: str = "spark", **overrides: Any) -> Config:
    """
    Load a Config from a YAML file.

    Reads the ``spark:`` section (or top-level keys when absent), expands
    ``${VAR}`` / ``${VAR:-default}`` from the environment, then applies
    ``overrides``. Missing values fall back to the CSPARK_* environment.

    Example:
        spark:
          base_url: https://excel.uat.us.coherent.global/my-tenant
          client_id: ${CSPARK_CLIENT_ID}
          client_secret: ${CSPARK_CLIENT_SECRET}
          timeout_ms: 90000
          max_retries: ${SPARK_MAX_RETRIES:-3}

    Raises:
        ConfigurationError: If the file is missing/invalid or has unknown keys
    """
    path = Path(path)
    data = _expand_env_vars(load_yaml(path))
    options = data.get(section, data) if section else data
    if not isinstance(options, dict):
        raise ConfigurationError(f"'{section}' section in {path} must be a mapping")

    unknown = set(options) - _YAML_OPTIONS
    if unknown:
        raise ConfigurationError(
            f"unknown keys in {path}: {', '.join(sorted(unknown))}",
            context={"path": str(path)},
        )

    # Empty or unresolved ${VAR} values must not shadow environment fallbacks
    options = {k: v for k, v in options.items() if not _is_unset(v)}
    options.update(overrides)

    logger.debug("Loaded config file", extra={"operation": "load_config", "resource": str(path)})
    return Config.create(**options)


__all__ = [
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_INTERVAL_SECONDS",
    "ENV_BASE_URL",
    "ENV_TENANT_NAME",
    "ENV_ENVIRONMENT",
    "ENV_API_KEY",
    "ENV_BEARER_TOKEN",
    "ENV_CLIENT_ID",
    "ENV_CLIENT_SECRET",
    "ENV_OAUTH_PATH",
    "Config",
    "load_config",
    "load_yaml",
]
