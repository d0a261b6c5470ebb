"""
Token Accessor - the one call every API client makes to get a bearer token.

Steps for get_token():
1. Load the stored credential (NotAuthenticatedError if there is none)
2. Fresh → return the stored access token unchanged
3. Stale (expired, or within the refresh-ahead window) → refresh, persist,
   return the new access token

Concurrency:
============
Several API tools in the same process may ask for the same provider's token
at once, each through its own TokenAccessor. Refreshes are serialized per
provider across the whole process: the lock registry lives at module level,
so every TokenAccessor on the same event loop shares one lock per provider.
The first caller that sees a stale credential refreshes it while holding
that lock; the others wait, re-read the store, find the fresh credential and
return it. Only one refresh call ever spends a given refresh token.

Usage:
    accessor = TokenAccessor()
    token = await accessor.get_token("google", client_id, client_secret)
    headers = {"Authorization": f"Bearer {token}"}
"""

import asyncio
import logging
import threading
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from loopauth.core.config import settings
from loopauth.environments import get_provider_client
from loopauth.environments.base import EnvironmentProvider, NotAuthenticatedError
from loopauth.schemas.credential import AuthCredential
from loopauth.services.credential_store import CredentialStore, SQLCredentialStore


logger = logging.getLogger("loopauth.services.token_accessor")

ClientFactory = Callable[[str, Optional[str], Optional[str]], EnvironmentProvider]


# ---------------------------------------------------------------------------
# PROCESS-WIDE REFRESH LOCKS
# ---------------------------------------------------------------------------
# (event loop, provider) -> lock. An asyncio.Lock is tied to one loop, so the
# loop is part of the key. Entries for closed loops are pruned on access.
_refresh_locks: Dict[Tuple[asyncio.AbstractEventLoop, str], asyncio.Lock] = {}
_refresh_locks_guard = threading.Lock()


def get_refresh_lock(provider: str) -> asyncio.Lock:
    """
    Return the refresh lock for `provider` on the running event loop.

    Shared by every TokenAccessor in the process.
    """
    loop = asyncio.get_running_loop()
    with _refresh_locks_guard:
        for key in [k for k in _refresh_locks if k[0].is_closed()]:
            del _refresh_locks[key]
        lock = _refresh_locks.get((loop, provider))
        if lock is None:
            lock = asyncio.Lock()
            _refresh_locks[(loop, provider)] = lock
        return lock


class TokenAccessor:
    """
    Hands out valid access tokens, refreshing stale ones.

    Attributes:
        store: Credential store (durable owner of every credential)
        refresh_ahead: Tokens expiring within this window are refreshed
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        refresh_ahead: Optional[timedelta] = None,
        client_factory: ClientFactory = get_provider_client,
    ):
        self.store = store if store is not None else SQLCredentialStore()
        self.refresh_ahead = (
            refresh_ahead
            if refresh_ahead is not None
            else timedelta(seconds=settings.OAUTH_REFRESH_AHEAD_SECONDS)
        )
        self._client_factory = client_factory

    def _load(self, provider: str) -> AuthCredential:
        credential = self.store.get(provider)
        if credential is None:
            raise NotAuthenticatedError(
                f"Not authenticated with {provider}. "
                f"Run: loopauth login --provider {provider}"
            )
        return credential

    # -------------------------------------------------------------------------
    # BEARER TOKEN
    # -------------------------------------------------------------------------

    async def get_token(
        self,
        provider: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> str:
        """
        Return a valid access token for `provider`.

        Args:
            provider: Provider name, e.g. "google"
            client_id: OAuth client ID used if a refresh is needed
            client_secret: OAuth client secret used if a refresh is needed

        Raises:
            NotAuthenticatedError: Nothing stored; run the login flow
            MissingRefreshTokenError: Stale and no refresh token; log in again
            RefreshError: The provider rejected the refresh
            StorageError: The store could not be read or written
        """
        credential = self._load(provider)
        if not credential.needs_refresh(self.refresh_ahead):
            return credential.access_token

        async with get_refresh_lock(provider):
            # Another caller may have refreshed while we waited for the lock
            credential = self._load(provider)
            if not credential.needs_refresh(self.refresh_ahead):
                logger.debug(f"{provider} token already refreshed by a concurrent caller")
                return credential.access_token

            logger.info(
                f"Refreshing {provider} token",
                extra={"expired": credential.is_expired()},
            )
            client = self._client_factory(provider, client_id, client_secret)
            refreshed = await client.refresh_credential(credential)
            self.store.set(provider, refreshed)

        return refreshed.access_token

    def get_token_json(self, provider: str) -> Dict[str, Any]:
        """
        Return the stored credential as an oauth2-style token dict.

        For libraries that take a full token object and refresh it
        themselves. No refresh happens here.

        Raises:
            NotAuthenticatedError: Nothing stored for `provider`
        """
        return self._load(provider).to_token_json()

    # -------------------------------------------------------------------------
    # STATUS / LOGOUT
    # -------------------------------------------------------------------------

    def status(self, provider: str) -> Dict[str, Any]:
        """
        Summarize the stored credential without exposing any secret.

        Returns:
            {"provider", "logged_in", "expired", "expires_at",
             "account_id", "has_refresh_token"}
        """
        credential = self.store.get(provider)
        if credential is None:
            return {
                "provider": provider,
                "logged_in": False,
                "expired": None,
                "expires_at": None,
                "account_id": None,
                "has_refresh_token": False,
            }
        return {
            "provider": provider,
            "logged_in": True,
            "expired": credential.is_expired(),
            "expires_at": credential.expires_at.isoformat() if credential.expires_at else None,
            "account_id": credential.account_id,
            "has_refresh_token": bool(credential.refresh_token),
        }

    async def logout(
        self,
        provider: str,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
    ) -> bool:
        """
        Revoke the provider's tokens (best effort) and delete the credential.

        The refresh token is revoked when present, since that also
        invalidates the access tokens minted from it.

        Returns:
            True if the provider confirmed the revocation. The credential is
            deleted locally either way.

        Raises:
            NotAuthenticatedError: Nothing stored for `provider`
        """
        credential = self._load(provider)
        client = self._client_factory(provider, client_id, client_secret)

        revoked = await client.revoke_token(credential.refresh_token or credential.access_token)
        if not revoked:
            logger.warning(f"Could not revoke {provider} token; removing local credential anyway")

        self.store.delete(provider)
        logger.info(f"Logged out of {provider}", extra={"revoked": revoked})
        return revoked
