"""
Authentication strategies.

Every outgoing request gets its credential header from exactly one strategy:

    OpenAuth                 public APIs, no header
    ApiKeyAuth               x-synthetic-key: <key>
    BearerAuth               Authorization: Bearer <token>
    OAuthClientCredentials   Authorization: Bearer <cached or freshly exchanged token>

Static strategies never expire and never suspend. The OAuth strategy caches its
token and refreshes it single-flight: concurrent callers that observe a stale
token all await the same in-flight exchange.
"""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple

import aiohttp

from cspark.auth.models import AccessToken
from cspark.errors.exceptions import AuthenticationError, ConfigurationError
from cspark.errors.status import RETRYABLE_STATUSES
from cspark.logging.adapter import SparkLogger, StdLogger

if TYPE_CHECKING:
    from cspark.config.config import Config

logger = logging.getLogger(__name__)

OPEN_AUTH_VALUE = "open"

API_KEY_HEADER = "x-synthetic-key"
AUTHORIZATION_HEADER = "Authorization"
_BEARER_PREFIX = re.compile(r"^bearer(\s+|$)", re.IGNORECASE)

# Refresh this long before the token's stated expiry
DEFAULT_REFRESH_BUFFER_SECONDS = 30

DEFAULT_TOKEN_TIMEOUT_SECONDS = 30.0


def mask(value: str | None) -> str:
    """Redact all but the last 4 characters of a secret."""
    if not value:
        return ""
    if len(value) <= 4:
        return "****"
    return f"****{value[-4:]}"


class AuthHeader(NamedTuple):
    name: str
    value: str


class AuthStrategy:
    """Base for credential resolvers. ``kind`` tags the variant."""

    kind: str = ""

    async def resolve_header(self, config: "Config | None" = None) -> AuthHeader | None:
        raise NotImplementedError

    async def refresh(self, config: "Config | None" = None, stale: str | None = None) -> bool:
        """
        Renew credentials after the platform rejected them.

        Returns:
            True if new credentials are available and a re-send makes sense
        """
        return False

    @property
    def is_open(self) -> bool:
        return False

    @property
    def masked(self) -> str:
        return ""

    async def close(self) -> None:
        return None

    def __str__(self) -> str:
        return repr(self)


class OpenAuth(AuthStrategy):
    """No credentials; only public endpoints will accept the calls."""

    kind = "open"

    async def resolve_header(self, config: "Config | None" = None) -> AuthHeader | None:
        return None

    @property
    def is_open(self) -> bool:
        return True

    def __repr__(self) -> str:
        return "OpenAuth()"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, OpenAuth)

    def __hash__(self) -> int:
        return hash(self.kind)


class ApiKeyAuth(AuthStrategy):
    """Static API key (a.k.a. synthetic key)."""

    kind = "apiKey"

    def __init__(self, key: str):
        if not key:
            raise ConfigurationError("API key must not be empty")
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def masked(self) -> str:
        return mask(self._key)

    async def resolve_header(self, config: "Config | None" = None) -> AuthHeader:
        return AuthHeader(API_KEY_HEADER, self._key)

    def __repr__(self) -> str:
        return f"ApiKeyAuth(key={self.masked!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ApiKeyAuth) and other._key == self._key

    def __hash__(self) -> int:
        return hash((self.kind, self._key))


class BearerAuth(AuthStrategy):
    """Static bearer token, stored without the ``Bearer`` prefix."""

    kind = "bearer"

    def __init__(self, token: str):
        token = _BEARER_PREFIX.sub("", (token or "").strip(), count=1).strip()
        if not token:
            raise ConfigurationError("bearer token must not be empty")
        self._token = token

    @property
    def token(self) -> str:
        return self._token

    @property
    def masked(self) -> str:
        return mask(self._token)

    async def resolve_header(self, config: "Config | None" = None) -> AuthHeader:
        return AuthHeader(AUTHORIZATION_HEADER, f"Bearer {self._token}")

    def __repr__(self) -> str:
        return f"BearerAuth(token={self.masked!r})"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, BearerAuth) and other._token == self._token

    def __hash__(self) -> int:
        return hash((self.kind, self._token))


class OAuthClientCredentials(AuthStrategy):
    """
    OAuth2 client-credentials flow with token caching and single-flight refresh.

    The token endpoint defaults to the tenant's keycloak realm
    (``config.base_url.token_url``) unless ``token_url`` is given.

    A refresh that fails transiently (transport error, 429, 5xx), or a
    refresh-token grant that is rejected, gets exactly one more attempt with
    the client-credentials grant. Anything else raises AuthenticationError.
    """

    kind = "oauth"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        token_url: str | None = None,
        refresh_buffer_seconds: float = DEFAULT_REFRESH_BUFFER_SECONDS,
        timeout_seconds: float = DEFAULT_TOKEN_TIMEOUT_SECONDS,
        session: aiohttp.ClientSession | None = None,
    ):
        if not client_id or not client_secret:
            raise ConfigurationError(
                "OAuth client ID and secret are required",
                context={"client_id": client_id or "", "client_secret": mask(client_secret)},
            )
        self.client_id = client_id
        self._client_secret = client_secret
        self.token_url = token_url
        self.refresh_buffer_seconds = refresh_buffer_seconds
        self.timeout_seconds = timeout_seconds

        self._token: AccessToken | None = None
        self._refresh_task: asyncio.Future[AccessToken] | None = None
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_file(cls, path: str | Path, **kwargs: Any) -> "OAuthClientCredentials":
        """
        Load client credentials from a JSON file.

        Accepts ``clientId``/``clientSecret`` or ``client_id``/``client_secret``.

        Raises:
            ConfigurationError: If the file is missing, unreadable or incomplete
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                f"failed to create oauth credentials from file <{path}>", cause=e
            ) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"oauth credentials file <{path}> must hold a JSON object")

        return cls(
            client_id=data.get("clientId") or data.get("client_id") or "",
            client_secret=data.get("clientSecret") or data.get("client_secret") or "",
            **kwargs,
        )

    def replace(self, **changes: Any) -> "OAuthClientCredentials":
        """
        New credentials with ``changes`` applied (``client_id``,
        ``client_secret``, ``token_url``, ...). The token cache is not shared.
        """
        options: dict[str, Any] = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "token_url": self.token_url,
            "refresh_buffer_seconds": self.refresh_buffer_seconds,
            "timeout_seconds": self.timeout_seconds,
        }
        options.update(changes)
        return OAuthClientCredentials(**options)

    @property
    def client_secret(self) -> str:
        return self._client_secret

    @property
    def masked(self) -> str:
        return mask(self._client_secret)

    @property
    def cached_token(self) -> AccessToken | None:
        return self._token

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None

    def _token_url_for(self, config: "Config | None") -> str:
        if self.token_url:
            return self.token_url
        if config is not None:
            return config.base_url.token_url
        raise ConfigurationError("OAuth token URL is unknown; pass token_url or a Config")

    @staticmethod
    def _logger_for(config: "Config | None") -> SparkLogger:
        if config is not None:
            return config.logger
        return StdLogger(logger)

    async def resolve_header(self, config: "Config | None" = None) -> AuthHeader:
        token = await self.get_token(config)
        return AuthHeader(AUTHORIZATION_HEADER, f"Bearer {token}")

    async def get_token(self, config: "Config | None" = None, force_refresh: bool = False) -> str:
        """
        Return a valid access token, exchanging credentials when needed.

        Args:
            config: Supplies the default token URL and the logger
            force_refresh: Ignore the cached token

        Raises:
            AuthenticationError: If the token exchange fails
        """
        token = self._token
        fresh = token is not None and not token.is_expired(self.refresh_buffer_seconds)
        if fresh and not force_refresh:
            return token.access_token  # type: ignore[union-attr]

        task = self._refresh_task
        if task is None:
            task = asyncio.ensure_future(
                self._refresh(self._token_url_for(config), self._logger_for(config))
            )
            self._refresh_task = task

        # Shielded so a cancelled caller does not cancel the exchange others await
        token = await asyncio.shield(task)
        return token.access_token

    async def refresh(self, config: "Config | None" = None, stale: str | None = None) -> bool:
        """
        Force a new token after a 401.

        If ``stale`` no longer matches the cached token, another caller already
        refreshed it and no new exchange is made.
        """
        current = self._token
        if (
            stale is not None
            and current is not None
            and current.access_token != stale
            and not current.is_expired(self.refresh_buffer_seconds)
        ):
            return True
        await self.get_token(config, force_refresh=True)
        return True

    async def _refresh(self, token_url: str, log: SparkLogger) -> AccessToken:
        try:
            current = self._token
            use_refresh_grant = current is not None and bool(current.refresh_token)
            data = (
                self._refresh_grant(current.refresh_token)  # type: ignore[union-attr]
                if use_refresh_grant
                else self._client_credentials_grant()
            )

            log.debug("retrieving OAuth2 access token", auth_type=self.kind, token_url=token_url)
            try:
                payload = await self._request_token(token_url, data)
            except AuthenticationError as e:
                if not (use_refresh_grant or e.context.get("transient")):
                    raise
                log.warn(
                    "OAuth2 token exchange failed, retrying once",
                    auth_type=self.kind,
                    token_url=token_url,
                    error=str(e)[:200],
                )
                payload = await self._request_token(token_url, self._client_credentials_grant())

            token = AccessToken.from_response(payload)
            self._token = token
            log.log(
                "OAuth2 access token retrieved",
                auth_type=self.kind,
                expires_in=token.remaining_lifetime.total_seconds(),
            )
            return token
        except AuthenticationError as e:
            log.error(
                "failed to retrieve OAuth2 access token",
                auth_type=self.kind,
                error=str(e)[:200],
            )
            raise
        finally:
            self._refresh_task = None

    def _client_credentials_grant(self) -> dict[str, str]:
        return {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }

    def _refresh_grant(self, refresh_token: str) -> dict[str, str]:
        return {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.client_id,
            "client_secret": self._client_secret,
        }

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _request_token(self, token_url: str, data: dict[str, str]) -> dict[str, Any]:
        """
        POST a form-encoded grant to the token endpoint.

        Raises:
            AuthenticationError: On any failure; ``context["transient"]`` marks
                failures worth one more attempt
        """
        session = await self._ensure_session()
        try:
            async with session.post(
                token_url,
                data=data,
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise AuthenticationError(
                        f"token exchange failed: HTTP {response.status}",
                        context={
                            "status": response.status,
                            "transient": response.status in RETRYABLE_STATUSES,
                            "body": error_text[:200],
                        },
                    )
                return await response.json(content_type=None)
        except AuthenticationError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(
                f"token exchange failed: {e}", cause=e, context={"transient": True}
            ) from e
        except ValueError as e:
            raise AuthenticationError("token endpoint returned invalid JSON", cause=e) from e

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def __repr__(self) -> str:
        return (
            f"OAuthClientCredentials(client_id={self.client_id!r}, "
            f"client_secret={self.masked!r})"
        )


def resolve_auth(
    api_key: str | None = None,
    token: str | None = None,
    oauth: "OAuthClientCredentials | dict | str | Path | None" = None,
    client_id: str | None = None,
    client_secret: str | None = None,
    oauth_path: str | Path | None = None,
    token_url: str | None = None,
) -> AuthStrategy:
    """
    Pick the auth strategy from the supplied credentials.

    Precedence is API key > bearer token > OAuth. An API key or token equal to
    ``"open"`` selects OpenAuth. OAuth credentials may come from an instance,
    a ``{clientId, clientSecret}`` dict, a JSON file path, or the separate
    ``client_id``/``client_secret`` pair.

    Raises:
        ConfigurationError: If no credential is resolvable
    """
    if api_key:
        return OpenAuth() if api_key == OPEN_AUTH_VALUE else ApiKeyAuth(api_key)
    if token:
        return OpenAuth() if token == OPEN_AUTH_VALUE else BearerAuth(token)

    if isinstance(oauth, OAuthClientCredentials):
        return oauth
    if isinstance(oauth, dict):
        return OAuthClientCredentials(
            client_id=oauth.get("clientId") or oauth.get("client_id") or "",
            client_secret=oauth.get("clientSecret") or oauth.get("client_secret") or "",
            token_url=token_url,
        )
    if isinstance(oauth, (str, Path)) and oauth:
        return OAuthClientCredentials.from_file(oauth, token_url=token_url)
    if client_id and client_secret:
        return OAuthClientCredentials(client_id, client_secret, token_url=token_url)
    if oauth_path:
        return OAuthClientCredentials.from_file(oauth_path, token_url=token_url)

    raise ConfigurationError(
        "user authentication is required; provide a valid API key, bearer token, "
        'or OAuth credentials to proceed. For public APIs, set the API key to "open".'
    )


__all__ = [
    "OPEN_AUTH_VALUE",
    "API_KEY_HEADER",
    "AUTHORIZATION_HEADER",
    "DEFAULT_REFRESH_BUFFER_SECONDS",
    "mask",
    "AuthHeader",
    "AuthStrategy",
    "OpenAuth",
    "ApiKeyAuth",
    "BearerAuth",
    "OAuthClientCredentials",
    "resolve_auth",
]
