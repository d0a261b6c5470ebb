"""
Tests for the Google OAuth client.

These tests verify:
- Authorization URL carries every required parameter and never the secret
- Code exchange builds a credential (account label from id_token)
- Exchange and refresh failures raise the right error with status code
- Refresh keeps or replaces the refresh token as Google dictates
- Revocation is best effort
- Provider registry lookup
"""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from jose import jwt

from loopauth.environments import get_provider_client
from loopauth.environments.base import (
    ExchangeError,
    MissingRefreshTokenError,
    RefreshError,
    UnknownProviderError,
)
from loopauth.environments.google.auth import GoogleAuthClient
from loopauth.environments.google.auth.schemas import (
    DEFAULT_GOOGLE_SCOPES,
    PROFILE_SCOPES,
    GoogleTokenResponse,
)


REDIRECT_URI = "http://127.0.0.1:1456/auth/google/callback"


@pytest.fixture
def client(token_endpoint) -> GoogleAuthClient:
    return GoogleAuthClient(
        client_id="client-123.apps.googleusercontent.com",
        client_secret="very-secret",
        transport=token_endpoint.transport,
    )


def _query(url: str) -> dict:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


# ---------------------------------------------------------------------------
# AUTHORIZATION URL TESTS
# ---------------------------------------------------------------------------

class TestAuthorizationUrl:
    """Tests for get_authorization_url()."""

    def test_required_parameters(self, client):
        url = client.get_authorization_url(
            scopes=["https://www.googleapis.com/auth/calendar"],
            state="state-abc",
            redirect_uri=REDIRECT_URI,
        )
        params = _query(url)

        assert url.startswith(GoogleAuthClient.AUTHORIZATION_URL)
        assert params["client_id"] == "client-123.apps.googleusercontent.com"
        assert params["redirect_uri"] == REDIRECT_URI
        assert params["response_type"] == "code"
        assert params["state"] == "state-abc"
        assert params["access_type"] == "offline"
        assert params["prompt"] == "consent"

    def test_secret_never_in_url(self, client):
        url = client.get_authorization_url(scopes=[], state="s", redirect_uri=REDIRECT_URI)
        assert "very-secret" not in url

    def test_requested_scopes_plus_profile(self, client):
        url = client.get_authorization_url(
            scopes=["https://www.googleapis.com/auth/calendar"],
            state="s",
            redirect_uri=REDIRECT_URI,
        )
        scopes = _query(url)["scope"].split(" ")
        assert scopes == ["https://www.googleapis.com/auth/calendar"] + PROFILE_SCOPES

    def test_empty_scopes_use_defaults(self, client):
        url = client.get_authorization_url(scopes=[], state="s", redirect_uri=REDIRECT_URI)
        scopes = _query(url)["scope"].split(" ")
        assert scopes[: len(DEFAULT_GOOGLE_SCOPES)] == DEFAULT_GOOGLE_SCOPES

    def test_profile_scopes_can_be_skipped(self, client):
        url = client.get_authorization_url(
            scopes=["https://www.googleapis.com/auth/drive"],
            state="s",
            redirect_uri=REDIRECT_URI,
            include_profile=False,
        )
        assert _query(url)["scope"] == "https://www.googleapis.com/auth/drive"


# ---------------------------------------------------------------------------
# CODE EXCHANGE TESTS
# ---------------------------------------------------------------------------

class TestExchangeCode:
    """Tests for exchange_code_for_tokens()."""

    @pytest.mark.asyncio
    async def test_exchange_success(self, client, token_endpoint):
        token_endpoint.token_body = {
            "access_token": "ya29.fresh",
            "refresh_token": "1//fresh-refresh",
            "expires_in": 3600,
            "token_type": "Bearer",
            "id_token": jwt.encode({"email": "user@example.com"}, "k", algorithm="HS256"),
        }
        before = datetime.now(timezone.utc)

        credential = await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)

        assert credential.access_token == "ya29.fresh"
        assert credential.refresh_token == "1//fresh-refresh"
        assert credential.provider == "google"
        assert credential.auth_method == "oauth"
        assert credential.account_id == "user@example.com"
        assert before + timedelta(seconds=3590) <= credential.expires_at
        assert credential.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=3600)

    @pytest.mark.asyncio
    async def test_exchange_sends_code_and_same_redirect(self, client, token_endpoint):
        await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)

        sent = token_endpoint.requests[0]
        assert token_endpoint.paths == ["/token"]
        assert sent["grant_type"] == "authorization_code"
        assert sent["code"] == "auth-code"
        assert sent["redirect_uri"] == REDIRECT_URI
        assert sent["client_id"] == "client-123.apps.googleusercontent.com"
        assert sent["client_secret"] == "very-secret"

    @pytest.mark.asyncio
    async def test_exchange_without_id_token_has_no_account(self, client):
        credential = await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)
        assert credential.account_id is None
        assert credential.refresh_token is None

    @pytest.mark.asyncio
    async def test_exchange_without_expires_in_never_expires(self, client, token_endpoint):
        token_endpoint.token_body = {"access_token": "ya29.forever"}
        credential = await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)
        assert credential.expires_at is None

    @pytest.mark.asyncio
    async def test_exchange_rejected(self, client, token_endpoint):
        token_endpoint.token_status = 400
        token_endpoint.token_body = {"error": "invalid_grant", "error_description": "Bad code"}

        with pytest.raises(ExchangeError) as exc_info:
            await client.exchange_code_for_tokens("used-code", REDIRECT_URI)

        assert exc_info.value.status_code == 400
        assert "Bad code" in str(exc_info.value)
        assert exc_info.value.phase == "exchange"

    @pytest.mark.asyncio
    async def test_exchange_network_error(self, client, token_endpoint):
        token_endpoint.raise_error = httpx.ConnectError("connection refused")

        with pytest.raises(ExchangeError) as exc_info:
            await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_exchange_malformed_response(self, client, token_endpoint):
        token_endpoint.token_body = {"token_type": "Bearer"}

        with pytest.raises(ExchangeError):
            await client.exchange_code_for_tokens("auth-code", REDIRECT_URI)


# ---------------------------------------------------------------------------
# REFRESH TESTS
# ---------------------------------------------------------------------------

class TestRefreshCredential:
    """Tests for refresh_credential()."""

    @pytest.mark.asyncio
    async def test_refresh_keeps_old_refresh_token(self, client, token_endpoint, make_credential):
        stored = make_credential(expires_in=timedelta(seconds=-1))

        refreshed = await client.refresh_credential(stored)

        assert refreshed.access_token == "ya29.new-access"
        assert refreshed.refresh_token == "1//stored-refresh"
        assert refreshed.account_id == "user@example.com"
        assert refreshed.provider == "google"
        assert refreshed.expires_at > datetime.now(timezone.utc)
        assert token_endpoint.requests[0]["grant_type"] == "refresh_token"
        assert token_endpoint.requests[0]["refresh_token"] == "1//stored-refresh"

    @pytest.mark.asyncio
    async def test_refresh_takes_rotated_refresh_token(self, client, token_endpoint, make_credential):
        token_endpoint.token_body["refresh_token"] = "1//rotated"

        refreshed = await client.refresh_credential(make_credential())

        assert refreshed.refresh_token == "1//rotated"

    @pytest.mark.asyncio
    async def test_refresh_leaves_input_untouched(self, client, make_credential):
        stored = make_credential()
        await client.refresh_credential(stored)
        assert stored.access_token == "ya29.stored-access"

    @pytest.mark.asyncio
    async def test_missing_refresh_token(self, client, token_endpoint, make_credential):
        stored = make_credential(refresh_token=None)

        with pytest.raises(MissingRefreshTokenError):
            await client.refresh_credential(stored)

        assert token_endpoint.requests == []

    @pytest.mark.asyncio
    async def test_refresh_rejected(self, client, token_endpoint, make_credential):
        token_endpoint.token_status = 400
        token_endpoint.token_body = {"error": "invalid_grant"}

        with pytest.raises(RefreshError) as exc_info:
            await client.refresh_credential(make_credential())

        assert exc_info.value.status_code == 400
        assert exc_info.value.phase == "refresh"


# ---------------------------------------------------------------------------
# REVOKE TESTS
# ---------------------------------------------------------------------------

class TestRevokeToken:
    """Tests for revoke_token()."""

    @pytest.mark.asyncio
    async def test_revoke_success(self, client, token_endpoint):
        assert await client.revoke_token("1//refresh") is True
        assert token_endpoint.paths == ["/revoke"]
        assert token_endpoint.requests[0]["token"] == "1//refresh"

    @pytest.mark.asyncio
    async def test_revoke_rejected(self, client, token_endpoint):
        token_endpoint.revoke_status = 400
        assert await client.revoke_token("1//refresh") is False

    @pytest.mark.asyncio
    async def test_revoke_network_error(self, client, token_endpoint):
        token_endpoint.raise_error = httpx.ConnectError("offline")
        assert await client.revoke_token("1//refresh") is False


# ---------------------------------------------------------------------------
# SCHEMA + REGISTRY TESTS
# ---------------------------------------------------------------------------

class TestGoogleTokenResponse:

    def test_scopes_list(self):
        response = GoogleTokenResponse(access_token="a", scope="openid email")
        assert response.get_scopes_list() == ["openid", "email"]

    def test_expires_at(self):
        now = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
        response = GoogleTokenResponse(access_token="a", expires_in=60)
        assert response.get_expires_at(now=now) == now + timedelta(seconds=60)


class TestProviderRegistry:

    def test_google_client(self):
        client = get_provider_client("Google", "id", "secret")
        assert isinstance(client, GoogleAuthClient)
        assert client.client_id == "id"

    def test_unknown_provider(self):
        with pytest.raises(UnknownProviderError):
            get_provider_client("myspace")
