"""
Authentication Package

Shared sign-in/sign-up pages, the cross-domain sign-out bridge and the
post sign-in profile reconciliation trigger.

Modules:
- routes: Public endpoints (/sign-in, /sign-up, /auth/*)
- signout: Sign-out state machine
- reconciliation: Single-shot reconciliation trigger and view guards
- provider: Identity provider Backend API client
- utils: JWKS fetching, caching, and session token verification
- pages: HTML shells for the auth pages
"""

from .routes import auth_router

__all__ = [
    "auth_router",
]
