"""Authentication strategies and OAuth2 token model."""

from cspark.auth.models import AccessToken
from cspark.auth.strategies import (
    API_KEY_HEADER,
    AUTHORIZATION_HEADER,
    DEFAULT_REFRESH_BUFFER_SECONDS,
    OPEN_AUTH_VALUE,
    ApiKeyAuth,
    AuthHeader,
    AuthStrategy,
    BearerAuth,
    OAuthClientCredentials,
    OpenAuth,
    mask,
    resolve_auth,
)

__all__ = [
    "AccessToken",
    "API_KEY_HEADER",
    "AUTHORIZATION_HEADER",
    "DEFAULT_REFRESH_BUFFER_SECONDS",
    "OPEN_AUTH_VALUE",
    "ApiKeyAuth",
    "AuthHeader",
    "AuthStrategy",
    "BearerAuth",
    "OAuthClientCredentials",
    "OpenAuth",
    "mask",
    "resolve_auth",
]
