"""
loopauth - OAuth2 loopback login and token maintenance for local tools.

Runs the authorization-code grant on the user's own machine (local callback
listener + browser), stores the resulting credential, and hands out valid
bearer tokens to API clients, refreshing them when they go stale.

Usage:
    from loopauth.services.token_accessor import TokenAccessor

    accessor = TokenAccessor()
    token = await accessor.get_token("google", client_id, client_secret)
"""

__version__ = "0.1.0"
