"""
Google OAuth Client - Handles the OAuth 2.0 token lifecycle with Google.

Key Features:
=============
1. Authorization URL generation (offline access + forced consent)
2. Code-to-credential exchange
3. Credential refresh that keeps the old refresh token when Google omits one
4. Account label from the id_token (unverified, display only)
5. Token revocation for logout

OAuth 2.0 Flow Implementation:
==============================
1. get_authorization_url() → opened in the user's browser
2. exchange_code_for_tokens() → called after the loopback callback
3. refresh_credential() → renew a stale access token
4. revoke_token() → invalidate tokens on logout

Why prompt=consent?
===================
Google omits the refresh token on repeat logins unless the consent screen is
shown again. Forcing consent guarantees a refresh token at the cost of one
extra click for the user.

References:
===========
- OAuth 2.0 for installed apps: https://developers.google.com/identity/protocols/oauth2/native-app
- Token endpoint: https://oauth2.googleapis.com/token
"""

import logging
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from loopauth.core.config import settings
from loopauth.core.security import decode_unverified_claims
from loopauth.environments.base import (
    EnvironmentProvider,
    ExchangeError,
    MissingRefreshTokenError,
    RefreshError,
)
from loopauth.environments.google.auth.schemas import (
    DEFAULT_GOOGLE_SCOPES,
    PROFILE_SCOPES,
    GoogleTokenResponse,
)
from loopauth.schemas.credential import AuthCredential


logger = logging.getLogger("loopauth.environments.google.auth")


class GoogleAuthClient(EnvironmentProvider):
    """
    Google OAuth 2.0 client for installed (loopback redirect) applications.

    Example Usage:
        client = GoogleAuthClient(client_id="...", client_secret="...")

        # Step 1: Generate auth URL
        auth_url = client.get_authorization_url(
            scopes=[],  # defaults
            state=generate_state(),
            redirect_uri="http://127.0.0.1:1456/auth/google/callback",
        )

        # Step 2: After the callback
        credential = await client.exchange_code_for_tokens(code, redirect_uri)

        # Step 3: When it goes stale
        credential = await client.refresh_credential(credential)
    """

    provider_name = "google"
    default_scopes = DEFAULT_GOOGLE_SCOPES

    # Google OAuth endpoints
    AUTHORIZATION_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Google OAuth client.

        Args:
            client_id: Google OAuth Client ID (defaults to settings)
            client_secret: Google OAuth Client Secret (defaults to settings)
            timeout: Seconds allowed per token endpoint call (defaults to settings)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.timeout = timeout if timeout is not None else settings.OAUTH_HTTP_TIMEOUT_SECONDS
        self._transport = transport

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET in environment variables."
            )

    # -------------------------------------------------------------------------
    # AUTHORIZATION URL
    # -------------------------------------------------------------------------

    def get_authorization_url(
        self,
        scopes: List[str],
        state: str,
        redirect_uri: str,
        include_profile: bool = True,
    ) -> str:
        """
        Generate the Google OAuth authorization URL.

        Args:
            scopes: OAuth scopes to request; empty means DEFAULT_GOOGLE_SCOPES
            state: CSRF protection token (fresh per login attempt)
            redirect_uri: Loopback callback URL (must match the exchange)
            include_profile: Add profile scopes so an id_token is returned

        Returns:
            Full authorization URL to open in the browser

        Note:
            The client secret is never part of this URL.
        """
        all_scopes = list(scopes) if scopes else list(self.default_scopes)
        if include_profile:
            for scope in PROFILE_SCOPES:
                if scope not in all_scopes:
                    all_scopes.append(scope)

        params = {
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": " ".join(all_scopes),
            "state": state,
            "access_type": "offline",  # issue a refresh_token
            "prompt": "consent",  # re-prompt so the refresh_token is always issued
        }

        auth_url = f"{self.AUTHORIZATION_URL}?{urlencode(params)}"

        logger.info(
            f"Generated Google auth URL with {len(all_scopes)} scopes",
            extra={"scopes": all_scopes},
        )

        return auth_url

    # -------------------------------------------------------------------------
    # TOKEN ENDPOINT
    # -------------------------------------------------------------------------

    async def _post_token(
        self,
        data: Dict[str, str],
        error_cls: Type[Exception],
        action: str,
    ) -> GoogleTokenResponse:
        """
        POST to the token endpoint and parse the response.

        Any failure (transport, non-200, bad JSON, missing fields) is raised
        as `error_cls` so callers see which phase failed.
        """
        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(self.TOKEN_URL, data=data)
            except httpx.RequestError as e:
                logger.error(f"Network error during token {action}: {e}")
                raise error_cls(f"Network error during token {action}: {e}") from e

        if response.status_code != 200:
            error_msg = _error_message(response)
            logger.error(f"Token {action} failed ({response.status_code}): {error_msg}")
            raise error_cls(
                f"Token {action} failed: {error_msg}",
                status_code=response.status_code,
            )

        try:
            return GoogleTokenResponse(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            logger.error(f"Malformed token {action} response: {e}")
            raise error_cls(f"Malformed token {action} response") from e

    async def exchange_code_for_tokens(
        self,
        code: str,
        redirect_uri: str,
    ) -> AuthCredential:
        """
        Exchange authorization code for a credential.

        Google returns an access token (~1 hour), a refresh token (because of
        access_type=offline + prompt=consent) and an id_token.

        Args:
            code: Authorization code from the loopback callback
            redirect_uri: Must match the redirect_uri used in authorization

        Returns:
            AuthCredential ready to be stored

        Raises:
            ExchangeError: If the exchange fails; nothing is produced
        """
        token_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }

        logger.info("Exchanging authorization code for tokens")
        token_response = await self._post_token(token_data, ExchangeError, "exchange")

        account_id = None
        if token_response.id_token:
            account_id = self._account_from_id_token(token_response.id_token)

        logger.info(
            "Successfully obtained Google tokens",
            extra={
                "has_refresh_token": token_response.refresh_token is not None,
                "expires_in": token_response.expires_in,
                "scopes": token_response.get_scopes_list(),
            },
        )

        return AuthCredential(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token or None,
            expires_at=token_response.get_expires_at(),
            provider=self.provider_name,
            auth_method="oauth",
            account_id=account_id,
        )

    async def refresh_credential(self, credential: AuthCredential) -> AuthCredential:
        """
        Use the stored refresh token to get a new access token.

        Google does not rotate the refresh token on every refresh, so when the
        response omits one the old refresh token is kept.

        Args:
            credential: The stored credential (must carry a refresh token)

        Returns:
            New AuthCredential; the input is left untouched

        Raises:
            MissingRefreshTokenError: No refresh token - a fresh login is needed
            RefreshError: If the refresh call fails
        """
        if not credential.refresh_token:
            raise MissingRefreshTokenError(
                f"No refresh token available for {credential.provider}; log in again"
            )

        refresh_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": credential.refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing access token")
        token_response = await self._post_token(refresh_data, RefreshError, "refresh")

        logger.info(
            "Successfully refreshed access token",
            extra={
                "expires_in": token_response.expires_in,
                "rotated_refresh_token": bool(token_response.refresh_token),
            },
        )

        return AuthCredential(
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token or credential.refresh_token,
            expires_at=token_response.get_expires_at(),
            provider=credential.provider,
            auth_method=credential.auth_method,
            account_id=credential.account_id,
        )

    # -------------------------------------------------------------------------
    # TOKEN REVOCATION
    # -------------------------------------------------------------------------

    async def revoke_token(self, token: str) -> bool:
        """
        Revoke an access or refresh token.

        Revoking a refresh token also invalidates the access tokens minted
        from it.

        Returns:
            True if revocation succeeded
        """
        logger.info("Revoking Google token")

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.post(self.REVOKE_URL, data={"token": token})
            except httpx.RequestError as e:
                logger.error(f"Network error during token revocation: {e}")
                return False

        success = response.status_code == 200
        if success:
            logger.info("Successfully revoked Google token")
        else:
            logger.warning(f"Token revocation returned status {response.status_code}")

        return success

    # -------------------------------------------------------------------------
    # UTILITY METHODS
    # -------------------------------------------------------------------------

    @staticmethod
    def _account_from_id_token(id_token: str) -> Optional[str]:
        """
        Pull the email claim out of the id_token for display.

        The signature is not verified, so the value is only a label.
        """
        claims = decode_unverified_claims(id_token)
        if not claims:
            logger.debug("id_token present but could not be decoded")
            return None
        email = claims.get("email")
        return email if isinstance(email, str) and email else None


def _error_message(response: httpx.Response) -> str:
    """Best-effort human message from a token endpoint error response."""
    try:
        error_data: Any = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(error_data, dict):
        return str(
            error_data.get("error_description")
            or error_data.get("error")
            or response.text
        )
    return response.text
