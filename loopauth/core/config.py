"""
Configuration module - centralized settings for loopauth.
Uses pydantic-settings to load values from environment variables and .env file.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


# Default location of the local credential database (~/.loopauth/credentials.db)
DEFAULT_DATA_DIR = Path.home() / ".loopauth"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic-settings automatically:
    1. Reads from environment variables (highest priority)
    2. Falls back to .env file values
    3. Uses default values if neither exists

    To override, set environment variables:
        export GOOGLE_CLIENT_ID=1234-abc.apps.googleusercontent.com
        export OAUTH_CALLBACK_PORT=1460
    """

    # ---------------------------------------------------------------------------
    # PYDANTIC SETTINGS CONFIGURATION
    # ---------------------------------------------------------------------------
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------------------------------------------------------------------------
    # APPLICATION SETTINGS
    # ---------------------------------------------------------------------------
    # APP_NAME: CLI program name (usage line, --version)
    APP_NAME: str = "loopauth"

    # LOG_LEVEL: Root log level used by the CLI (DEBUG, INFO, WARNING, ...)
    LOG_LEVEL: str = "INFO"

    # ---------------------------------------------------------------------------
    # GOOGLE OAUTH SETTINGS
    # ---------------------------------------------------------------------------
    # Google Cloud Console: https://console.cloud.google.com/apis/credentials
    #
    # Setup Instructions:
    # 1. Create an OAuth 2.0 Client ID of type "Desktop app"
    # 2. Enable the Gmail, Calendar, Drive and Photos Library APIs as needed
    # 3. Copy Client ID and Client Secret to .env file
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    # GOOGLE_SCOPES: Scopes to request. Empty means DEFAULT_GOOGLE_SCOPES.
    # Set as a JSON list in the environment:
    #   export GOOGLE_SCOPES='["https://www.googleapis.com/auth/calendar"]'
    GOOGLE_SCOPES: List[str] = []

    # ---------------------------------------------------------------------------
    # LOOPBACK CALLBACK LISTENER
    # ---------------------------------------------------------------------------
    # The listener only ever binds a loopback address.
    # The redirect URI becomes http://{HOST}:{PORT}/auth/{provider}/callback
    # A non-loopback value is refused when the listener binds.
    OAUTH_CALLBACK_HOST: str = "127.0.0.1"
    OAUTH_CALLBACK_PORT: int = 1456

    # How long the login flow waits for the browser redirect
    OAUTH_LOGIN_TIMEOUT_SECONDS: float = 5 * 60

    # Grace period for in-flight requests when the listener shuts down
    OAUTH_SHUTDOWN_GRACE_SECONDS: float = 2.0

    # ---------------------------------------------------------------------------
    # TOKEN ENDPOINT / REFRESH
    # ---------------------------------------------------------------------------
    # Timeout for code exchange, refresh and revocation calls
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 30.0

    # Refresh-ahead threshold: tokens expiring within this window are refreshed
    OAUTH_REFRESH_AHEAD_SECONDS: int = 5 * 60

    # ---------------------------------------------------------------------------
    # CREDENTIAL STORAGE
    # ---------------------------------------------------------------------------
    # SQLAlchemy URL of the credential database.
    # Empty means sqlite file under DEFAULT_DATA_DIR.
    CREDENTIALS_DATABASE_URL: str = ""

    def get_credentials_database_url(self) -> str:
        """Resolve the credential database URL, creating the data dir if needed."""
        if self.CREDENTIALS_DATABASE_URL:
            return self.CREDENTIALS_DATABASE_URL
        DEFAULT_DATA_DIR.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{DEFAULT_DATA_DIR / 'credentials.db'}"


# ---------------------------------------------------------------------------
# GLOBAL SETTINGS INSTANCE
# ---------------------------------------------------------------------------
# Usage: from loopauth.core.config import settings
settings = Settings()
