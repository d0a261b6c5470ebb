"""
Login Flow - OAuth2 authorization-code grant with a loopback redirect.

State machine:
    IDLE → AWAITING_CALLBACK → SUCCEEDED | FAILED

Flow:
1. Generate a fresh state token and build the authorization URL
2. Bind the loopback listener (before the URL is shown anywhere)
3. Print the URL and open the browser (best effort)
4. Wait for the one-shot callback result, bounded by the login timeout
5. Stop the listener (always), exchange the code, store the credential

A LoginFlow runs once. A new attempt needs a new LoginFlow, which brings a
fresh state token and a fresh listener.

Usage:
    flow = LoginFlow(GoogleAuthClient(), store)
    credential = await flow.run()
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

from loopauth.core.config import settings
from loopauth.core.security import generate_state
from loopauth.environments.base import EnvironmentProvider
from loopauth.schemas.credential import AuthCredential
from loopauth.services.browser import open_browser
from loopauth.services.callback_listener import CallbackListener
from loopauth.services.credential_store import CredentialStore
from loopauth.services.flow_state import FlowState


logger = logging.getLogger("loopauth.services.login_flow")


class LoginState(str, Enum):
    """Where a login attempt is in its lifecycle."""
    IDLE = "idle"
    AWAITING_CALLBACK = "awaiting_callback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class LoginFlow:
    """
    One interactive login attempt for one provider.

    Attributes:
        client: Provider OAuth client (builds URL, exchanges code)
        store: Where the resulting credential is saved
        scopes: Requested scopes (empty → provider defaults)
        state: Current LoginState
    """

    def __init__(
        self,
        client: EnvironmentProvider,
        store: CredentialStore,
        scopes: Optional[List[str]] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
        shutdown_grace: Optional[float] = None,
        browser_opener: Callable[[str], bool] = open_browser,
    ):
        self.client = client
        self.store = store
        self.scopes = list(scopes or [])
        self.host = host or settings.OAUTH_CALLBACK_HOST
        self.port = settings.OAUTH_CALLBACK_PORT if port is None else port
        self.timeout = settings.OAUTH_LOGIN_TIMEOUT_SECONDS if timeout is None else timeout
        self.shutdown_grace = shutdown_grace
        self.browser_opener = browser_opener
        self.state = LoginState.IDLE

    @property
    def provider(self) -> str:
        return self.client.provider_name

    @property
    def redirect_uri(self) -> str:
        """Loopback redirect URI; must be identical for URL and exchange."""
        return f"http://{self.host}:{self.port}/auth/{self.provider}/callback"

    async def run(self) -> AuthCredential:
        """
        Run the login attempt to a terminal state.

        Returns:
            The stored AuthCredential

        Raises:
            ListenerError: Loopback port could not be bound
            StateMismatchError / UserDeniedError / CallbackError: bad redirect
            LoginTimeoutError: No callback before the timeout
            ExchangeError: Code exchange failed
            StorageError: Credential could not be saved
            RuntimeError: This flow already ran
        """
        if self.state is not LoginState.IDLE:
            raise RuntimeError("A LoginFlow runs once; start a new one to log in again")

        try:
            credential = await self._run()
        except BaseException:
            self.state = LoginState.FAILED
            raise

        self.state = LoginState.SUCCEEDED
        return credential

    async def _run(self) -> AuthCredential:
        flow = FlowState(
            provider=self.provider,
            state=generate_state(),
            redirect_uri=self.redirect_uri,
        )
        auth_url = self.client.get_authorization_url(
            scopes=self.scopes,
            state=flow.state,
            redirect_uri=flow.redirect_uri,
        )

        async with CallbackListener(
            flow,
            host=self.host,
            port=self.port,
            shutdown_grace=self.shutdown_grace,
        ):
            self._launch_browser(auth_url)
            self.state = LoginState.AWAITING_CALLBACK
            logger.info(f"Waiting for {self.provider} callback", extra={"timeout": self.timeout})
            result = await flow.rendezvous.wait(self.timeout)

        if result.error is not None:
            logger.warning(f"{self.provider} login failed: {result.error}")
            raise result.error

        credential = await self.client.exchange_code_for_tokens(
            code=result.code,
            redirect_uri=flow.redirect_uri,
        )
        self.store.set(self.provider, credential)

        logger.info(
            f"{self.provider} login complete",
            extra={"account_id": credential.account_id},
        )
        return credential

    def _launch_browser(self, auth_url: str) -> None:
        """Show the URL and try to open it; failure only changes the message."""
        print(f"Open this URL to authenticate with {self.provider.title()}:\n\n{auth_url}\n")
        try:
            opened = self.browser_opener(auth_url)
        except Exception as e:
            logger.warning(f"Browser launcher failed: {e}")
            opened = False
        if not opened:
            print(
                "Could not open browser automatically.\n"
                f"Please open this URL manually:\n\n{auth_url}\n"
            )
        print(f"Waiting for {self.provider.title()} authentication in browser...")
