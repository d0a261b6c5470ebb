"""
Google Auth Module - OAuth 2.0 Authentication for Google Services

This module handles the OAuth 2.0 token lifecycle for Google APIs.
All Google API tools (Gmail, Calendar, Drive, Photos) share the one
credential produced here.

OAuth 2.0 Flow Overview:
========================
1. The CLI starts a login; a loopback listener is bound
2. The authorization URL (with offline access + forced consent) is opened
3. The user grants permissions in the browser
4. Google redirects to the loopback listener with an authorization code
5. The code is exchanged for access + refresh tokens
6. The credential is stored and refreshed on demand
"""

from loopauth.environments.google.auth.client import GoogleAuthClient
from loopauth.environments.google.auth.schemas import (
    GoogleTokenResponse,
    CALENDAR_SCOPES,
    DEFAULT_GOOGLE_SCOPES,
    DRIVE_SCOPES,
    GMAIL_SCOPES,
    PHOTOS_SCOPES,
    PROFILE_SCOPES,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleTokenResponse",
    "CALENDAR_SCOPES",
    "DEFAULT_GOOGLE_SCOPES",
    "DRIVE_SCOPES",
    "GMAIL_SCOPES",
    "PHOTOS_SCOPES",
    "PROFILE_SCOPES",
]
