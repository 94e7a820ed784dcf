"""
CORS for the identity provider's reserved path prefix.

Satellite pages call the provider Frontend API through the primary origin,
so requests under PROVIDER_PATH_PREFIX are cross-origin. Only origins that
exactly match a registered satellite origin get CORS headers; everything
else is answered without them and the browser blocks the response.
"""

import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("gateway.proxy.cors")

ALLOW_METHODS = "GET,POST,PUT,DELETE,OPTIONS"
ALLOW_HEADERS = "Content-Type,Authorization"


class ProviderCORSMiddleware(BaseHTTPMiddleware):
    """
    Answer preflights and decorate responses on the provider path prefix.

    Args:
        app: ASGI application
        path_prefix: Reserved prefix, e.g. "/__clerk"
    """

    def __init__(self, app, path_prefix: str = "/__clerk"):
        super().__init__(app)
        self.path_prefix = path_prefix.rstrip("/")

    def matches(self, path: str) -> bool:
        return path == self.path_prefix or path.startswith(self.path_prefix + "/")

    async def _allowed_origin(self, request: Request) -> Optional[str]:
        origin = request.headers.get("origin")
        if not origin:
            return None

        app_state = getattr(request.app.state, "app_state", None)
        if app_state is None or app_state.registry is None:
            return None

        snapshot = await app_state.registry.get_snapshot()
        if snapshot.is_registered_origin(origin):
            return origin

        logger.debug(f"No CORS headers for unregistered origin {origin}")
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.matches(request.url.path):
            return await call_next(request)

        allowed_origin = await self._allowed_origin(request)

        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)

        if allowed_origin:
            response.headers["Access-Control-Allow-Origin"] = allowed_origin
            response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
            response.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
            response.headers["Access-Control-Allow-Credentials"] = "true"

        # Responses differ per Origin, caches must key on it
        vary = response.headers.get("Vary")
        if not vary:
            response.headers["Vary"] = "Origin"
        elif "origin" not in [value.strip().lower() for value in vary.split(",")]:
            response.headers["Vary"] = f"{vary}, Origin"
        return response
