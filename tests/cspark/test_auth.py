"""Tests for cspark.auth strategies and token caching."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from cspark.auth import (
    API_KEY_HEADER,
    AccessToken,
    ApiKeyAuth,
    BearerAuth,
    OAuthClientCredentials,
    OpenAuth,
    mask,
    resolve_auth,
)
from cspark.errors import AuthenticationError, ConfigurationError

TOKEN_URL = "https://keycloak.test.us.coherent.global/auth/realms/t/protocol/openid-connect/token"


def _token(value="cached", seconds=300, refresh_token=None):
    return AccessToken(
        access_token=value,
        token_type="Bearer",
        expires_at=datetime.now(UTC) + timedelta(seconds=seconds),
        refresh_token=refresh_token,
    )


def _oauth(**kwargs):
    return OAuthClientCredentials("client-id", "client-secret-9876", token_url=TOKEN_URL, **kwargs)


class TestMask:
    """Tests for secret masking."""

    @pytest.mark.parametrize(
        "value,expected",
        [("abcdefgh", "****efgh"), ("abcd", "****"), ("ab", "****"), ("", ""), (None, "")],
    )
    def test_mask(self, value, expected):
        assert mask(value) == expected


class TestStaticStrategies:
    """Tests for OpenAuth, ApiKeyAuth and BearerAuth."""

    @pytest.mark.asyncio
    async def test_open_auth_has_no_header(self):
        auth = OpenAuth()
        assert await auth.resolve_header() is None
        assert auth.is_open

    @pytest.mark.asyncio
    async def test_api_key_header(self):
        header = await ApiKeyAuth("my-secret-key").resolve_header()
        assert header.name == API_KEY_HEADER
        assert header.value == "my-secret-key"

    @pytest.mark.asyncio
    async def test_bearer_prefix_stripped(self):
        auth = BearerAuth("Bearer abc.def.ghi")
        header = await auth.resolve_header()

        assert auth.token == "abc.def.ghi"
        assert header.value == "Bearer abc.def.ghi"

    @pytest.mark.asyncio
    async def test_static_refresh_is_declined(self):
        assert await ApiKeyAuth("k" * 8).refresh() is False

    def test_repr_is_masked(self):
        assert "secret" not in repr(ApiKeyAuth("my-secret-key"))
        assert repr(ApiKeyAuth("my-secret-key")) == "ApiKeyAuth(key='****-key')"
        assert "abc.def" not in repr(BearerAuth("abc.def.ghi"))

    def test_empty_credentials_rejected(self):
        with pytest.raises(ConfigurationError):
            ApiKeyAuth("")
        with pytest.raises(ConfigurationError):
            BearerAuth("Bearer ")
        with pytest.raises(ConfigurationError):
            BearerAuth("bearer")

    @pytest.mark.asyncio
    async def test_bearer_prefix_stripped_case_insensitively(self):
        assert (await BearerAuth("BEARER\tabc").resolve_header()).value == "Bearer abc"
        assert BearerAuth("bearerabc").token == "bearerabc"

    def test_equality(self):
        assert ApiKeyAuth("abc") == ApiKeyAuth("abc")
        assert ApiKeyAuth("abc") != BearerAuth("abc")
        assert OpenAuth() == OpenAuth()


class TestResolveAuth:
    """Tests for credential precedence."""

    def test_api_key_wins(self):
        auth = resolve_auth(api_key="key", token="tok", client_id="id", client_secret="secret")
        assert isinstance(auth, ApiKeyAuth)

    def test_token_before_oauth(self):
        auth = resolve_auth(token="tok", client_id="id", client_secret="secret")
        assert isinstance(auth, BearerAuth)

    @pytest.mark.parametrize("kwargs", [{"api_key": "open"}, {"token": "open"}])
    def test_open_value(self, kwargs):
        assert isinstance(resolve_auth(**kwargs), OpenAuth)

    def test_oauth_from_dict(self):
        auth = resolve_auth(oauth={"clientId": "id", "clientSecret": "secret"}, token_url=TOKEN_URL)

        assert isinstance(auth, OAuthClientCredentials)
        assert auth.client_id == "id"
        assert auth.token_url == TOKEN_URL

    def test_oauth_from_file(self, tmp_path):
        path = tmp_path / "oauth.json"
        path.write_text(json.dumps({"client_id": "file-id", "client_secret": "file-secret"}))

        auth = resolve_auth(oauth_path=path)

        assert isinstance(auth, OAuthClientCredentials)
        assert auth.client_id == "file-id"
        assert auth.client_secret == "file-secret"

    def test_oauth_file_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="oauth credentials"):
            resolve_auth(oauth=str(tmp_path / "missing.json"))

    def test_oauth_instance_passthrough(self):
        oauth = _oauth()
        assert resolve_auth(oauth=oauth) is oauth

    def test_nothing_given(self):
        with pytest.raises(ConfigurationError, match="authentication is required"):
            resolve_auth()


class TestAccessToken:
    """Tests for AccessToken expiry tracking."""

    def test_from_response(self):
        token = AccessToken.from_response({"access_token": "abc", "expires_in": 60})

        assert token.token_type == "Bearer"
        assert not token.is_expired()
        assert token.is_expired(buffer_seconds=120)

    def test_missing_access_token(self):
        with pytest.raises(AuthenticationError):
            AccessToken.from_response({"token_type": "Bearer"})

    def test_repr_hides_token(self):
        assert "abc" not in repr(AccessToken.from_response({"access_token": "abc"}))


class TestOAuthClientCredentials:
    """Tests for token caching, refresh and single-flight exchange."""

    def test_requires_id_and_secret(self):
        with pytest.raises(ConfigurationError):
            OAuthClientCredentials("", "secret")

    def test_token_url_defaults_to_realm(self, config):
        oauth = OAuthClientCredentials("id", "secret")
        assert oauth._token_url_for(config) == config.base_url.token_url

    def test_token_url_unknown_without_config(self):
        with pytest.raises(ConfigurationError):
            OAuthClientCredentials("id", "secret")._token_url_for(None)

    @pytest.mark.asyncio
    async def test_cached_token_reused(self):
        oauth = _oauth()
        oauth._token = _token("cached")

        with patch.object(oauth, "_request_token", new=AsyncMock()) as exchange:
            header = await oauth.resolve_header()

        assert header.value == "Bearer cached"
        exchange.assert_not_called()

    @pytest.mark.asyncio
    async def test_expired_token_exchanged(self):
        oauth = _oauth()
        oauth._token = _token("old", seconds=-10)

        with patch.object(
            oauth, "_request_token", new=AsyncMock(return_value={"access_token": "new"})
        ) as exchange:
            header = await oauth.resolve_header()

        assert header.value == "Bearer new"
        assert exchange.call_args.args[1]["grant_type"] == "client_credentials"

    @pytest.mark.asyncio
    async def test_token_within_buffer_is_refreshed(self):
        oauth = _oauth(refresh_buffer_seconds=30)
        oauth._token = _token("almost", seconds=10)

        with patch.object(
            oauth, "_request_token", new=AsyncMock(return_value={"access_token": "new"})
        ):
            assert await oauth.get_token() == "new"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_exchange(self):
        """Two callers on an expired token trigger exactly one token exchange."""
        oauth = _oauth()
        oauth._token = _token("old", seconds=-10)

        async def slow_exchange(token_url, data):
            await asyncio.sleep(0.01)
            return {"access_token": "shared", "expires_in": 300}

        exchange = AsyncMock(side_effect=slow_exchange)
        with patch.object(oauth, "_request_token", new=exchange):
            first, second = await asyncio.gather(oauth.resolve_header(), oauth.resolve_header())

        assert exchange.await_count == 1
        assert first.value == second.value == "Bearer shared"
        assert not oauth.refreshing

    @pytest.mark.asyncio
    async def test_refresh_grant_used_when_available(self):
        oauth = _oauth()
        oauth._token = _token("old", seconds=-10, refresh_token="rt-1")

        exchange = AsyncMock(return_value={"access_token": "new"})
        with patch.object(oauth, "_request_token", new=exchange):
            await oauth.get_token()

        data = exchange.call_args.args[1]
        assert data["grant_type"] == "refresh_token"
        assert data["refresh_token"] == "rt-1"

    @pytest.mark.asyncio
    async def test_rejected_refresh_grant_falls_back_once(self):
        oauth = _oauth()
        oauth._token = _token("old", seconds=-10, refresh_token="rt-1")

        exchange = AsyncMock(
            side_effect=[AuthenticationError("invalid_grant"), {"access_token": "new"}]
        )
        with patch.object(oauth, "_request_token", new=exchange):
            assert await oauth.get_token() == "new"

        assert exchange.await_count == 2
        assert exchange.call_args.args[1]["grant_type"] == "client_credentials"

    @pytest.mark.asyncio
    async def test_transient_failure_retried_once(self):
        oauth = _oauth()
        transient = AuthenticationError("HTTP 503", context={"transient": True})

        exchange = AsyncMock(side_effect=[transient, {"access_token": "new"}])
        with patch.object(oauth, "_request_token", new=exchange):
            assert await oauth.get_token() == "new"

        assert exchange.await_count == 2

    @pytest.mark.asyncio
    async def test_persistent_failure_raises(self):
        oauth = _oauth()
        transient = AuthenticationError("HTTP 503", context={"transient": True})

        exchange = AsyncMock(side_effect=[transient, transient, {"access_token": "never"}])
        with patch.object(oauth, "_request_token", new=exchange):
            with pytest.raises(AuthenticationError):
                await oauth.get_token()

        assert exchange.await_count == 2
        assert not oauth.refreshing

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self):
        oauth = _oauth()

        exchange = AsyncMock(side_effect=AuthenticationError("HTTP 401"))
        with patch.object(oauth, "_request_token", new=exchange):
            with pytest.raises(AuthenticationError):
                await oauth.get_token()

        assert exchange.await_count == 1

    @pytest.mark.asyncio
    async def test_refresh_skipped_when_token_already_rotated(self):
        oauth = _oauth()
        oauth._token = _token("rotated")

        with patch.object(oauth, "_request_token", new=AsyncMock()) as exchange:
            assert await oauth.refresh(stale="old") is True

        exchange.assert_not_called()

    @pytest.mark.asyncio
    async def test_refresh_forces_exchange_for_stale_token(self):
        oauth = _oauth()
        oauth._token = _token("old")

        exchange = AsyncMock(return_value={"access_token": "new"})
        with patch.object(oauth, "_request_token", new=exchange):
            assert await oauth.refresh(stale="old") is True

        assert oauth.cached_token.access_token == "new"


class TestTokenRequest:
    """Tests for the token endpoint call."""

    @staticmethod
    def _session(status=200, payload=None, error=None):
        response = MagicMock()
        response.status = status
        response.json = AsyncMock(return_value=payload)
        response.text = AsyncMock(return_value="denied")
        response.__aenter__ = AsyncMock(return_value=response)
        response.__aexit__ = AsyncMock(return_value=None)

        session = MagicMock()
        session.closed = False
        session.close = AsyncMock()
        if error is not None:
            session.post = MagicMock(side_effect=error)
        else:
            session.post = MagicMock(return_value=response)
        return session

    @pytest.mark.asyncio
    async def test_posts_form_grant(self):
        session = self._session(payload={"access_token": "abc", "expires_in": 60})
        oauth = _oauth(session=session)

        assert await oauth.get_token() == "abc"

        args, kwargs = session.post.call_args
        assert args[0] == TOKEN_URL
        assert kwargs["data"]["client_id"] == "client-id"

    @pytest.mark.asyncio
    async def test_non_200_raises(self):
        oauth = _oauth(session=self._session(status=401))

        with pytest.raises(AuthenticationError) as exc_info:
            await oauth._request_token(TOKEN_URL, {})

        assert exc_info.value.context["status"] == 401
        assert exc_info.value.context["transient"] is False

    @pytest.mark.asyncio
    async def test_transport_failure_is_transient(self):
        oauth = _oauth(session=self._session(error=aiohttp.ClientConnectionError("refused")))

        with pytest.raises(AuthenticationError) as exc_info:
            await oauth._request_token(TOKEN_URL, {})

        assert exc_info.value.context["transient"] is True

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self):
        session = self._session()
        oauth = _oauth(session=session)

        await oauth.close()

        session.close.assert_not_called()
