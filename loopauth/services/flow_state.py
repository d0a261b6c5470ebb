"""
Flow State - per-login-attempt state shared by the listener and the login flow.

The callback handler runs inside the listener; the login flow waits in the
foreground. They meet at a CallbackRendezvous: a single-slot, one-shot
future. The first delivery wins; every later delivery is refused without
blocking, so a browser retry or a duplicate tab cannot overwrite the result.

Lifecycle:
1. LoginFlow creates a FlowState (fresh state token + redirect URI)
2. The listener handler delivers exactly one CallbackResult
3. LoginFlow observes it (or times out) and discards the FlowState
"""

import asyncio
import logging
import threading
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from typing import Optional

from loopauth.environments.base import AuthError, LoginTimeoutError


logger = logging.getLogger("loopauth.services.flow_state")


@dataclass(frozen=True)
class CallbackResult:
    """
    Outcome of the provider redirect: either a code or an error.
    """
    code: Optional[str] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.code)


class CallbackRendezvous:
    """
    One-shot hand-off from the callback handler to the waiting login flow.

    Backed by a concurrent.futures.Future so the producer may run on any
    thread or event loop (uvicorn task, TestClient portal thread).
    """

    def __init__(self):
        self._future: Future = Future()
        self._lock = threading.Lock()

    @property
    def resolved(self) -> bool:
        """True once a result was delivered or the wait was abandoned."""
        return self._future.done()

    def deliver(self, result: CallbackResult) -> bool:
        """
        Offer a result. Never blocks.

        Returns:
            True if this result was accepted, False if the slot was already
            resolved (duplicate or late callback).
        """
        with self._lock:
            if self._future.done():
                return False
            try:
                self._future.set_result(result)
            except InvalidStateError:
                # cancelled by a timed-out waiter between the check and the set
                return False
        return True

    async def wait(self, timeout: float) -> CallbackResult:
        """
        Wait for the delivered result.

        Raises:
            LoginTimeoutError: If nothing arrives within `timeout` seconds.
                The slot is closed, so any later callback is ignored.
        """
        try:
            return await asyncio.wait_for(asyncio.wrap_future(self._future), timeout)
        except asyncio.TimeoutError:
            self.close()
            minutes = timeout / 60
            raise LoginTimeoutError(
                f"Authentication timed out after {minutes:g} minutes. Please run login again."
            ) from None

    def close(self) -> None:
        """Refuse any further delivery."""
        with self._lock:
            if not self._future.done():
                self._future.cancel()


@dataclass
class FlowState:
    """
    State for one login attempt. Never persisted.

    Attributes:
        provider: Provider name used in the callback path
        state: CSRF token issued with the authorization URL
        redirect_uri: Exact redirect URI sent to the provider
        rendezvous: One-shot result slot
    """
    provider: str
    state: str = field(repr=False)
    redirect_uri: str
    rendezvous: CallbackRendezvous = field(default_factory=CallbackRendezvous)

    @property
    def callback_path(self) -> str:
        return f"/auth/{self.provider}/callback"
