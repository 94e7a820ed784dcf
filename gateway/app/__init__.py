"""
Gateway Application Package

FastAPI service on the primary domain that serves the shared auth pages,
bridges sign-out back to satellite domains, and fronts the identity
provider's reserved path prefix.

Subpackages:
- satellites: satellite registry and its sources
- redirects: redirect resolution and the sign-out allow-list
- auth: pages, sign-out bridge, reconciliation, provider client
- proxy: provider prefix CORS and forwarding
"""
