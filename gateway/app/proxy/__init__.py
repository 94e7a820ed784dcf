"""
Provider Proxy Package
======================

The identity provider's browser SDK talks to its Frontend API through a
reserved path prefix on the primary origin (PROVIDER_PATH_PREFIX).

Main Components:
----------------
- cors.py: CORS answers for registered satellite origins on the prefix
- routes.py: Forwarding of the prefix to the provider Frontend API

Usage:
------
    from gateway.app.proxy import ProviderCORSMiddleware, provider_router
    app.add_middleware(ProviderCORSMiddleware, path_prefix="/__clerk")
    app.include_router(provider_router, prefix="/__clerk")
"""

from .cors import ProviderCORSMiddleware
from .routes import provider_router

__all__ = ["ProviderCORSMiddleware", "provider_router"]
