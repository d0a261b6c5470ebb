"""
Base classes and interfaces for OAuth provider integrations.

This module defines the error taxonomy shared by every part of the login and
token lifecycle, and the abstract contract that each provider (Google today)
implements.

Error Taxonomy:
===============
Every error carries the phase it originated in:
- authorize: building the flow (listener bind, unknown provider)
- callback:  the browser redirect (state mismatch, user denied, timeout)
- exchange:  trading the authorization code for tokens
- refresh:   trading the refresh token for a new access token
- store:     reading/writing the credential store

None of these errors are retried by loopauth itself; retry is a caller decision.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from loopauth.schemas.credential import AuthCredential


# ---------------------------------------------------------------------------
# PHASES
# ---------------------------------------------------------------------------

PHASE_AUTHORIZE = "authorize"
PHASE_CALLBACK = "callback"
PHASE_EXCHANGE = "exchange"
PHASE_REFRESH = "refresh"
PHASE_STORE = "store"


# ---------------------------------------------------------------------------
# CUSTOM EXCEPTIONS
# ---------------------------------------------------------------------------


class AuthError(Exception):
    """Base exception for all loopauth errors."""

    phase: str = PHASE_AUTHORIZE

    def __init__(self, message: str, phase: Optional[str] = None):
        super().__init__(message)
        if phase is not None:
            self.phase = phase

    def __str__(self) -> str:
        return f"[{self.phase}] {super().__str__()}"


class ListenerError(AuthError):
    """Raised when the loopback callback listener cannot be started."""
    phase = PHASE_AUTHORIZE


class UnknownProviderError(AuthError):
    """Raised when no OAuth client is registered for a provider name."""
    phase = PHASE_AUTHORIZE


class CallbackError(AuthError):
    """Raised when the provider redirect does not carry a usable code."""
    phase = PHASE_CALLBACK


class StateMismatchError(CallbackError):
    """
    Raised when the redirect's state parameter is not the one we issued.

    Treated as a security anomaly (possible CSRF, or a stale browser tab).
    The attempt is aborted and never retried.
    """
    pass


class UserDeniedError(CallbackError):
    """Raised when the provider reports that the user declined consent."""

    def __init__(self, error: str, description: Optional[str] = None):
        self.error = error
        self.description = description
        reason = f"{error}: {description}" if description else error
        super().__init__(f"Authorization denied by provider ({reason})")


class LoginTimeoutError(CallbackError):
    """Raised when no valid callback arrives before the login timeout."""
    pass


class ExchangeError(AuthError):
    """Raised when trading the authorization code for tokens fails."""

    phase = PHASE_EXCHANGE

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshError(AuthError):
    """Raised when refreshing an access token fails."""

    phase = PHASE_REFRESH

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MissingRefreshTokenError(RefreshError):
    """Raised when a refresh is attempted on a credential without a refresh token."""
    pass


class StorageError(AuthError):
    """Raised when the credential store cannot be read or written."""
    phase = PHASE_STORE


class NotAuthenticatedError(AuthError):
    """Raised when no credential is stored for the requested provider."""
    phase = PHASE_STORE


# ---------------------------------------------------------------------------
# ABSTRACT BASE CLASSES
# ---------------------------------------------------------------------------


class EnvironmentProvider(ABC):
    """
    Abstract base class for OAuth providers (Google, Microsoft, etc.).

    Each provider must implement these methods to take part in the loopback
    login flow and in token maintenance. The provider is responsible for:
    - Generating authorization URLs
    - Exchanging authorization codes for credentials
    - Refreshing stale credentials
    - Revoking tokens on logout
    """

    # Unique identifier for this provider (e.g., "google")
    provider_name: str = ""

    # Scopes requested when the caller asks for none
    default_scopes: List[str] = []

    @abstractmethod
    def get_authorization_url(
        self,
        scopes: List[str],
        state: str,
        redirect_uri: str,
    ) -> str:
        """
        Generate the OAuth authorization URL.

        Args:
            scopes: List of OAuth scopes to request (empty means defaults)
            state: CSRF protection state parameter
            redirect_uri: Loopback callback URL

        Returns:
            URL to open in the user's browser
        """

    @abstractmethod
    async def exchange_code_for_tokens(
        self,
        code: str,
        redirect_uri: str,
    ) -> AuthCredential:
        """
        Exchange an authorization code for a credential.

        Raises:
            ExchangeError: If code exchange fails
        """

    @abstractmethod
    async def refresh_credential(self, credential: AuthCredential) -> AuthCredential:
        """
        Use the credential's refresh token to get a new access token.

        Raises:
            MissingRefreshTokenError: If the credential has no refresh token
            RefreshError: If the provider rejects the refresh
        """

    @abstractmethod
    async def revoke_token(self, token: str) -> bool:
        """
        Revoke an access or refresh token.

        Returns:
            True if revocation succeeded
        """
