"""
Credential schemas - the persisted OAuth credential record.

AuthCredential is what the credential store keeps per provider. It is frozen:
a refresh produces a new record instead of mutating the stored one, so a
failed refresh can never leave a half-updated credential behind.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthCredential(BaseModel):
    """
    OAuth credential for one provider.

    Field names are the persisted/wire names:
    {
        "access_token": "ya29.a0AfB_byC...",
        "refresh_token": "1//0eXyz...",
        "expires_at": "2026-10-19T12:00:00+00:00",
        "provider": "google",
        "auth_method": "oauth",
        "account_id": "user@gmail.com"
    }
    """

    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., min_length=1, repr=False, description="Bearer access token")
    refresh_token: Optional[str] = Field(None, repr=False, description="Refresh token (if issued)")
    expires_at: Optional[datetime] = Field(None, description="Absolute UTC expiry of access_token")
    provider: str = Field(..., min_length=1, description="Provider identifier, e.g. 'google'")
    auth_method: str = Field(default="oauth", description="How the credential was obtained")
    account_id: Optional[str] = Field(None, description="Display label, e.g. email (unverified)")

    @field_validator("expires_at")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Normalize expiry to an aware UTC datetime (naive values are UTC)."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    # -------------------------------------------------------------------------
    # EXPIRY HELPERS
    # -------------------------------------------------------------------------

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """
        Check if the access token has expired.

        A credential without expiry (provider reported no lifetime) never
        expires on its own.
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    def needs_refresh(self, threshold: timedelta, now: Optional[datetime] = None) -> bool:
        """
        Check if the token is expired or will expire within `threshold`.

        Args:
            threshold: Refresh-ahead window (e.g., 5 minutes)
            now: Override current time (tests)
        """
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= (self.expires_at - threshold)

    def to_token_json(self) -> Dict[str, Any]:
        """
        Export as an oauth2-style token object.

        Useful for client libraries that want the full token rather than a
        bare bearer string.
        """
        return {
            "access_token": self.access_token,
            "token_type": "Bearer",
            "refresh_token": self.refresh_token,
            "expiry": self.expires_at.isoformat() if self.expires_at else None,
        }
