"""
Google Environment Module - Google account sign-in.

Only authentication lives here; the Gmail, Calendar, Drive and Photos
API tools are separate consumers of the bearer token.
"""

from loopauth.environments.google.auth import GoogleAuthClient, DEFAULT_GOOGLE_SCOPES

__all__ = [
    "GoogleAuthClient",
    "DEFAULT_GOOGLE_SCOPES",
]
