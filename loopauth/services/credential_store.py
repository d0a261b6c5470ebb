"""
Credential Store - keyed get/set of one AuthCredential per provider.

The store owns the durable copy of every credential. Callers (the login flow
and the token accessor) only hold a transient copy for the duration of one
call.

Implementations:
- MemoryCredentialStore: process-local dict (tests, ephemeral sessions)
- SQLCredentialStore: SQLAlchemy table, SQLite file by default

Contract:
- get(provider) returns None when nothing is stored
- set(provider, credential) replaces the record atomically or raises
  StorageError leaving the old record intact
- the record's provider must equal the key
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError

from loopauth.db.base import Base
from loopauth.db.session import create_credentials_engine, create_session_factory
from loopauth.environments.base import StorageError
from loopauth.models.auth_credential import CredentialRecord
from loopauth.schemas.credential import AuthCredential


logger = logging.getLogger("loopauth.services.credential_store")


class CredentialStore(ABC):
    """Abstract key-value store of credentials, keyed by provider."""

    @abstractmethod
    def get(self, provider: str) -> Optional[AuthCredential]:
        """Return the stored credential, or None if absent."""

    @abstractmethod
    def set(self, provider: str, credential: AuthCredential) -> None:
        """Store (replace) the credential for `provider`."""

    @abstractmethod
    def delete(self, provider: str) -> bool:
        """Remove the credential. Returns True if one was stored."""

    @abstractmethod
    def providers(self) -> List[str]:
        """Names of providers that currently have a stored credential."""

    @staticmethod
    def _check_key(provider: str, credential: AuthCredential) -> None:
        """A credential is only ever stored under its own provider."""
        if credential.provider != provider:
            raise StorageError(
                f"Credential for provider '{credential.provider}' "
                f"cannot be stored under '{provider}'"
            )


class MemoryCredentialStore(CredentialStore):
    """
    In-memory store.

    AuthCredential is frozen, so handing out the stored object is safe.
    """

    def __init__(self):
        self._credentials: Dict[str, AuthCredential] = {}
        self._lock = threading.Lock()

    def get(self, provider: str) -> Optional[AuthCredential]:
        with self._lock:
            return self._credentials.get(provider)

    def set(self, provider: str, credential: AuthCredential) -> None:
        self._check_key(provider, credential)
        with self._lock:
            self._credentials[provider] = credential

    def delete(self, provider: str) -> bool:
        with self._lock:
            return self._credentials.pop(provider, None) is not None

    def providers(self) -> List[str]:
        with self._lock:
            return sorted(self._credentials)


class SQLCredentialStore(CredentialStore):
    """
    SQLAlchemy-backed store.

    Each operation uses its own short session; writes happen in one
    transaction and are rolled back on any database error.

    Example:
        store = SQLCredentialStore()  # ~/.loopauth/credentials.db
        store.set("google", credential)
    """

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or create_credentials_engine()
        self._session_factory = create_session_factory(self.engine)
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            logger.error(f"Failed to initialize credential database: {e}")
            raise StorageError(f"Failed to initialize credential database: {e}") from e

    def get(self, provider: str) -> Optional[AuthCredential]:
        try:
            with self._session_factory() as session:
                row = session.get(CredentialRecord, provider)
                if row is None:
                    return None
                return row.to_credential()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read credential for {provider}: {e}")
            raise StorageError(f"Failed to read credential for {provider}: {e}") from e
        except ValidationError as e:
            logger.error(f"Stored credential for {provider} is invalid: {e}")
            raise StorageError(f"Stored credential for {provider} is invalid") from e

    def set(self, provider: str, credential: AuthCredential) -> None:
        self._check_key(provider, credential)
        try:
            with self._session_factory() as session:
                with session.begin():
                    session.merge(CredentialRecord.from_credential(credential))
        except SQLAlchemyError as e:
            logger.error(f"Failed to save credential for {provider}: {e}")
            raise StorageError(f"Failed to save credential for {provider}: {e}") from e

        logger.debug(f"Saved credential for {provider}")

    def delete(self, provider: str) -> bool:
        try:
            with self._session_factory() as session:
                with session.begin():
                    row = session.get(CredentialRecord, provider)
                    if row is None:
                        return False
                    session.delete(row)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete credential for {provider}: {e}")
            raise StorageError(f"Failed to delete credential for {provider}: {e}") from e
        return True

    def providers(self) -> List[str]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(
                    select(CredentialRecord.provider).order_by(CredentialRecord.provider)
                ))
        except SQLAlchemyError as e:
            logger.error(f"Failed to list stored credentials: {e}")
            raise StorageError(f"Failed to list stored credentials: {e}") from e
