"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test credential database (SQLite in-memory for speed)
- Credential stores
- Free loopback port for listener tests
- Sample data factories
- Mock token endpoint (httpx.MockTransport)
"""

import json
import socket
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Generator, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

from loopauth.db.base import Base
from loopauth.schemas.credential import AuthCredential
from loopauth.services.credential_store import MemoryCredentialStore, SQLCredentialStore


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# Use SQLite in-memory for fast tests
# StaticPool keeps the same connection across all operations

SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory database for each test function.

    Tables are created by the store; dropped here after the test.
    """
    test_engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},  # Required for SQLite
        poolclass=StaticPool,  # Keep connection alive across operations
    )
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


# ---------------------------------------------------------------------------
# STORE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def sql_store(engine: Engine) -> SQLCredentialStore:
    """SQL-backed credential store on the in-memory database."""
    return SQLCredentialStore(engine=engine)


@pytest.fixture
def memory_store() -> MemoryCredentialStore:
    """Process-local credential store."""
    return MemoryCredentialStore()


# ---------------------------------------------------------------------------
# NETWORK FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def free_port() -> int:
    """A loopback port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def port_is_free(port: int) -> bool:
    """True if a new listener could bind the port right now."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind(("127.0.0.1", port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


# ---------------------------------------------------------------------------
# CREDENTIAL FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def make_credential() -> Callable[..., AuthCredential]:
    """
    Factory for AuthCredential test data.

    Returns:
        make(expires_in=timedelta(hours=1), **overrides) -> AuthCredential
    """
    def make(
        expires_in: Optional[timedelta] = timedelta(hours=1),
        **overrides,
    ) -> AuthCredential:
        data = {
            "access_token": "ya29.stored-access",
            "refresh_token": "1//stored-refresh",
            "expires_at": (
                datetime.now(timezone.utc) + expires_in if expires_in is not None else None
            ),
            "provider": "google",
            "auth_method": "oauth",
            "account_id": "user@example.com",
        }
        data.update(overrides)
        return AuthCredential(**data)

    return make


# ---------------------------------------------------------------------------
# TOKEN ENDPOINT FIXTURES
# ---------------------------------------------------------------------------

class TokenEndpoint:
    """
    Fake Google token + revoke endpoints for httpx.MockTransport.

    Records every request's form body. Responses are configurable per path.
    """

    def __init__(self):
        self.requests: List[Dict[str, str]] = []
        self.paths: List[str] = []
        self.token_status = 200
        self.token_body: Dict = {
            "access_token": "ya29.new-access",
            "expires_in": 3599,
            "token_type": "Bearer",
            "scope": "https://www.googleapis.com/auth/calendar",
        }
        self.revoke_status = 200
        self.raise_error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.raise_error is not None:
            raise self.raise_error
        form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        self.requests.append(form)
        self.paths.append(request.url.path)

        if request.url.path == "/revoke":
            return httpx.Response(self.revoke_status, json={})
        return httpx.Response(
            self.token_status,
            content=json.dumps(self.token_body),
            headers={"Content-Type": "application/json"},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def grants(self) -> List[str]:
        return [r.get("grant_type") for r in self.requests if "grant_type" in r]


@pytest.fixture
def token_endpoint() -> TokenEndpoint:
    """Fresh fake token endpoint per test."""
    return TokenEndpoint()


@pytest.fixture
def is_port_free() -> Callable[[int], bool]:
    """Fixture form of port_is_free."""
    return port_is_free
