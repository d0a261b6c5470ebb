"""
Auth Credential model - local table holding one OAuth credential per provider.

The credential store converts between this row and the AuthCredential schema;
nothing else touches the table directly.

Example:
    row = CredentialRecord.from_credential(credential)
    session.merge(row)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from loopauth.db.base import Base
from loopauth.schemas.credential import AuthCredential


class CredentialRecord(Base):
    """
    SQLAlchemy ORM model for the 'auth_credentials' table.

    Keyed by provider: storing a credential for a provider replaces the
    previous one in a single transaction.
    """

    __tablename__ = "auth_credentials"

    # ---------------------------------------------------------------------------
    # PRIMARY KEY
    # ---------------------------------------------------------------------------
    # provider: "google", ... - one credential per provider
    provider: Mapped[str] = mapped_column(String(50), primary_key=True)

    # ---------------------------------------------------------------------------
    # TOKEN DATA
    # ---------------------------------------------------------------------------
    # Text type to handle long tokens
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # expires_at: When the access_token expires (stored as UTC)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ---------------------------------------------------------------------------
    # METADATA
    # ---------------------------------------------------------------------------
    auth_method: Mapped[str] = mapped_column(String(50), default="oauth")

    # account_id: Display label (email from the unverified id_token)
    account_id: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ---------------------------------------------------------------------------
    # CONVERSION
    # ---------------------------------------------------------------------------
    @classmethod
    def from_credential(cls, credential: AuthCredential) -> "CredentialRecord":
        """Build a row from the schema object."""
        return cls(
            provider=credential.provider,
            access_token=credential.access_token,
            refresh_token=credential.refresh_token,
            expires_at=credential.expires_at,
            auth_method=credential.auth_method,
            account_id=credential.account_id,
            updated_at=datetime.now(timezone.utc),
        )

    def to_credential(self) -> AuthCredential:
        """
        Convert the row back to the schema object.

        SQLite drops tzinfo on the way back; the schema re-attaches UTC.
        """
        return AuthCredential(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            expires_at=self.expires_at,
            provider=self.provider,
            auth_method=self.auth_method,
            account_id=self.account_id,
        )

    def __repr__(self) -> str:
        return f"<CredentialRecord(provider='{self.provider}')>"
