"""OAuth2 access token model."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from cspark.errors.exceptions import AuthenticationError


@dataclass(frozen=True)
class AccessToken:
    """
    OAuth2 access token with expiration tracking.

    Attributes:
        access_token: The access token string
        token_type: Token type (typically "Bearer")
        expires_at: UTC timestamp when token expires
        scope: Space-separated scopes granted
        refresh_token: Optional refresh token for token renewal
    """

    access_token: str
    token_type: str
    expires_at: datetime
    scope: str | None = None
    refresh_token: str | None = None

    @classmethod
    def from_response(cls, response: dict, expires_in: int | None = None) -> "AccessToken":
        """
        Create token from an OAuth2 token response.

        Args:
            response: Token endpoint JSON body
            expires_in: Optional override for expires_in (seconds)

        Raises:
            AuthenticationError: If the response carries no access token
        """
        access_token = response.get("access_token") if isinstance(response, dict) else None
        if not access_token:
            raise AuthenticationError("no access token found in token response")

        expires_in = expires_in or response.get("expires_in") or 3600
        return cls(
            access_token=access_token,
            token_type=response.get("token_type") or "Bearer",
            expires_at=datetime.now(UTC) + timedelta(seconds=float(expires_in)),
            scope=response.get("scope"),
            refresh_token=response.get("refresh_token"),
        )

    def is_expired(self, buffer_seconds: float = 0) -> bool:
        """True once ``now >= expires_at - buffer_seconds``."""
        return datetime.now(UTC) >= self.expires_at - timedelta(seconds=buffer_seconds)

    @property
    def remaining_lifetime(self) -> timedelta:
        return self.expires_at - datetime.now(UTC)

    def __repr__(self) -> str:
        return (
            f"AccessToken(token_type={self.token_type!r}, "
            f"expires_at={self.expires_at.isoformat()!r})"
        )


__all__ = ["AccessToken"]
