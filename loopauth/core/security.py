"""
Security utilities - state tokens and unverified id_token claims.
These are the small security primitives used by the login flow.
"""

import secrets
from typing import Any, Dict, Optional

from jose import JWTError, jwt  # python-jose library for JWT decoding


def generate_state() -> str:
    """
    Generate a cryptographically secure state parameter.

    Used for CSRF protection in the OAuth flow: the value is sent with the
    authorization URL and must come back unchanged on the redirect.

    Returns:
        43-character random URL-safe string (256 bits of entropy)

    Security notes:
        - Backed by the OS entropy source; failure there propagates
        - A new value is generated for every login attempt
    """
    return secrets.token_urlsafe(32)


def states_match(expected: str, received: Optional[str]) -> bool:
    """
    Compare the issued state with the one received on the redirect.

    Uses a constant-time comparison so the check does not leak how many
    leading characters matched.
    """
    if not received:
        return False
    return secrets.compare_digest(expected.encode(), received.encode())


def decode_unverified_claims(token: str) -> Optional[Dict[str, Any]]:
    """
    Read the claims of a JWT WITHOUT verifying its signature.

    Args:
        token: A JWT string (e.g., the id_token from a token response)

    Returns:
        Claims dict, or None if the token cannot be parsed

    Security notes:
        - The signature is NOT checked, so the claims are untrusted input
        - Only use the result as a display label (e.g., "logged in as ...")
        - Never use it for authorization or identity decisions
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None
