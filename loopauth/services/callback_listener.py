"""
Callback Listener - ephemeral loopback HTTP server for the provider redirect.

A small FastAPI app (the oauth_callback router) served by uvicorn as a
background asyncio task while the login flow waits in the foreground.

Ordering:
    The socket is bound and listening before start() returns, so the
    authorization URL is never surfaced before the redirect target exists.

Shutdown:
    stop() runs on every exit path (use the listener as an async context
    manager). In-flight requests get a short grace period; after that the
    server is force-exited. Shutdown problems are logged, never raised.

Usage:
    async with CallbackListener(flow, port=1456) as listener:
        ...open browser...
        result = await flow.rendezvous.wait(timeout=300)
"""

import asyncio
import ipaddress
import logging
import os
import socket
from typing import Optional

import uvicorn
from fastapi import FastAPI

from loopauth.core.config import settings
from loopauth.environments.base import ListenerError
from loopauth.routers import oauth_callback
from loopauth.services.flow_state import FlowState


logger = logging.getLogger("loopauth.services.callback_listener")

# On Windows SO_REUSEADDR lets another process bind the same port
REUSE_ADDRESS = os.name != "nt"


def is_loopback_host(host: str) -> bool:
    """True for 'localhost' and loopback IP literals (127.0.0.0/8, ::1)."""
    if host.lower() == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def create_callback_app(flow: FlowState) -> FastAPI:
    """
    Build the FastAPI app for one login attempt.

    The flow is attached to app.state so the router can validate the state
    token and deliver the result.
    """
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.flow = flow
    app.include_router(oauth_callback.router)
    return app


class CallbackListener:
    """
    Loopback listener for one login attempt.

    Attributes:
        flow: FlowState the callback is validated against
        host: Loopback address to bind
        port: Port to bind (0 picks a free port; see bound_port)
        shutdown_grace: Seconds allowed for in-flight requests on stop()
    """

    def __init__(
        self,
        flow: FlowState,
        host: Optional[str] = None,
        port: Optional[int] = None,
        shutdown_grace: Optional[float] = None,
    ):
        self.flow = flow
        self.host = host or settings.OAUTH_CALLBACK_HOST
        self.port = settings.OAUTH_CALLBACK_PORT if port is None else port
        self.shutdown_grace = (
            settings.OAUTH_SHUTDOWN_GRACE_SECONDS if shutdown_grace is None else shutdown_grace
        )

        self._socket: Optional[socket.socket] = None
        self._bound_port: Optional[int] = None
        self._server: Optional[uvicorn.Server] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def bound_port(self) -> Optional[int]:
        """Actual port once bound."""
        return self._bound_port

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # -------------------------------------------------------------------------
    # START
    # -------------------------------------------------------------------------

    def _bind(self) -> socket.socket:
        """
        Bind and listen on the loopback socket.

        Raises:
            ListenerError: Non-loopback host, or the port cannot be bound
        """
        if not is_loopback_host(self.host):
            logger.error(f"Refusing to bind callback listener on non-loopback host {self.host}")
            raise ListenerError(
                f"Callback listener must bind a loopback address, got '{self.host}'"
            )

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        if REUSE_ADDRESS:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(16)
        except OSError as e:
            sock.close()
            logger.error(f"Cannot bind callback listener on {self.host}:{self.port}: {e}")
            raise ListenerError(
                f"Starting callback server on {self.host}:{self.port} failed: {e}"
            ) from e
        sock.setblocking(False)
        self._bound_port = sock.getsockname()[1]
        return sock

    async def start(self) -> None:
        """
        Bind the socket and start serving.

        Raises:
            ListenerError: If the port cannot be bound or the server dies on startup
        """
        if self._task is not None:
            raise RuntimeError("CallbackListener instances are single use")

        self._socket = self._bind()

        config = uvicorn.Config(
            create_callback_app(self.flow),
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=max(1, int(self.shutdown_grace)),
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[self._socket]))

        while not self._server.started:
            if self._task.done():
                error = None if self._task.cancelled() else self._task.exception()
                self._close_socket()
                raise ListenerError(f"Callback server failed to start: {error}")
            await asyncio.sleep(0.01)

        logger.info(
            f"Callback listener ready on http://{self.host}:{self.bound_port}"
            f"{self.flow.callback_path}"
        )

    # -------------------------------------------------------------------------
    # STOP
    # -------------------------------------------------------------------------

    async def stop(self) -> None:
        """
        Shut the server down with a bounded grace period.

        Never raises: a failed shutdown must not mask the login outcome.
        """
        if self._task is None or self._server is None:
            self._close_socket()
            return

        self._server.should_exit = True
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_grace)
        except asyncio.TimeoutError:
            logger.warning(
                f"Callback listener did not stop within {self.shutdown_grace}s; forcing exit"
            )
            self._server.force_exit = True
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Callback listener exited with error: {e}")
        except Exception as e:
            logger.warning(f"Callback listener shutdown failed: {e}")
        finally:
            self._close_socket()

        logger.debug("Callback listener stopped")

    def _close_socket(self) -> None:
        if self._socket is not None:
            try:
                self._socket.close()
            except OSError as e:
                logger.debug(f"Closing callback socket failed: {e}")

    # -------------------------------------------------------------------------
    # CONTEXT MANAGER
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "CallbackListener":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
