"""
Database session management - SQLAlchemy engine and session factory.
This module provides the connection to the local credential database.
"""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from loopauth.core.config import settings


def create_credentials_engine(url: Optional[str] = None) -> Engine:
    """
    Create the engine for the credential database.

    Args:
        url: SQLAlchemy URL; defaults to the configured credential database

    - pool_pre_ping=True: check a pooled connection is alive before use
    - check_same_thread=False: the SQLite connection may be used from the
      event loop thread and from worker threads
    """
    url = url or settings.get_credentials_database_url()
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Build a session factory bound to `engine`.

    - autocommit=False: changes are only saved by an explicit commit()
    - autoflush=False: no implicit flush before queries
    - expire_on_commit=False: rows stay readable after the session commits
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )
