"""
Routers module - HTTP endpoint handlers.

- oauth_callback: loopback redirect target for the login flow
"""
