"""
Environments Module - OAuth provider integrations.

Architecture Overview:
======================
environments/
├── __init__.py           # Module exports + provider registry
├── base.py               # Error taxonomy and provider contract
└── google/
    └── auth/
        ├── client.py     # Google OAuth implementation
        └── schemas.py    # Scopes and token response

Adding a provider means implementing EnvironmentProvider and registering
it in PROVIDER_CLIENTS.
"""

from typing import Dict, Optional, Type

from loopauth.environments.base import (
    EnvironmentProvider,
    AuthError,
    CallbackError,
    ExchangeError,
    ListenerError,
    LoginTimeoutError,
    MissingRefreshTokenError,
    NotAuthenticatedError,
    RefreshError,
    StateMismatchError,
    StorageError,
    UnknownProviderError,
    UserDeniedError,
)
from loopauth.environments.google.auth.client import GoogleAuthClient


# Provider name -> OAuth client class
PROVIDER_CLIENTS: Dict[str, Type[EnvironmentProvider]] = {
    GoogleAuthClient.provider_name: GoogleAuthClient,
}


def get_provider_client(
    provider: str,
    client_id: Optional[str] = None,
    client_secret: Optional[str] = None,
) -> EnvironmentProvider:
    """
    Build the OAuth client registered for `provider`.

    Raises:
        UnknownProviderError: If the provider is not registered
    """
    normalized = provider.lower().strip()
    client_cls = PROVIDER_CLIENTS.get(normalized)
    if client_cls is None:
        supported = ", ".join(sorted(PROVIDER_CLIENTS))
        raise UnknownProviderError(
            f"Unknown provider '{provider}'. Supported providers: {supported}"
        )
    return client_cls(client_id=client_id, client_secret=client_secret)


__all__ = [
    "EnvironmentProvider",
    "AuthError",
    "CallbackError",
    "ExchangeError",
    "ListenerError",
    "LoginTimeoutError",
    "MissingRefreshTokenError",
    "NotAuthenticatedError",
    "RefreshError",
    "StateMismatchError",
    "StorageError",
    "UnknownProviderError",
    "UserDeniedError",
    "PROVIDER_CLIENTS",
    "get_provider_client",
]
