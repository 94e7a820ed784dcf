"""
Provider Frontend API Forwarding
================================

Requests under PROVIDER_PATH_PREFIX are forwarded to the identity
provider's Frontend API so the browser SDK works from satellite origins.

Header Handling:
----------------
1. Hop-by-hop headers, Host and Content-Length are dropped
2. Clerk-Proxy-Url tells the provider which public URL it is served from
3. Clerk-Secret-Key authenticates the proxy to the provider
4. X-Forwarded-For carries the browser's address

Upstream timeouts map to 504 and network failures to 503. Each request is
forwarded once; handshake traffic is not safe to replay.
"""

import logging
from typing import Dict, List, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
import httpx

from ..config import Settings
from ..dependencies import get_app_settings, get_provider_client

logger = logging.getLogger("gateway.proxy.routes")

provider_router = APIRouter(tags=["Provider Proxy"])

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Recomputed by httpx/starlette for the new message
_REQUEST_SKIP = HOP_BY_HOP_HEADERS | {"host", "content-length"}
_RESPONSE_SKIP = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}


# ============================================================================
# Header Functions
# ============================================================================

def build_provider_headers(
    settings: Settings,
    original_headers: List[Tuple[str, str]],
    client_host: str = "",
) -> List[Tuple[str, str]]:
    """
    Build headers for the forwarded provider request.

    Args:
        settings: Application settings
        original_headers: Incoming request headers as (name, value) pairs
        client_host: Address of the connecting browser

    Returns:
        Header pairs for the upstream request

    Raises:
        HTTPException: If PROVIDER_SECRET_KEY is not configured
    """
    if not settings.PROVIDER_SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PROVIDER_SECRET_KEY not configured",
        )

    forwarded_for = None
    headers = []
    for name, value in original_headers:
        lowered = name.lower()
        if lowered in _REQUEST_SKIP:
            continue
        if lowered == "x-forwarded-for":
            forwarded_for = value
            continue
        headers.append((name, value))

    if client_host:
        forwarded_for = f"{forwarded_for}, {client_host}" if forwarded_for else client_host

    headers.append(("Clerk-Proxy-Url", settings.proxy_url))
    headers.append(("Clerk-Secret-Key", settings.PROVIDER_SECRET_KEY))
    if forwarded_for:
        headers.append(("X-Forwarded-For", forwarded_for))

    return headers


def filter_response_headers(headers: httpx.Headers) -> Dict[str, List[str]]:
    kept: Dict[str, List[str]] = {}
    for name, value in headers.multi_items():
        if name.lower() in _RESPONSE_SKIP:
            continue
        kept.setdefault(name, []).append(value)
    return kept


# ============================================================================
# Forwarding Endpoint
# ============================================================================

@provider_router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
)
async def forward_to_provider(
    path: str,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    provider_client: httpx.AsyncClient = Depends(get_provider_client),
):
    """
    Forward one request to the provider Frontend API.

    Raises:
        HTTPException: 503 when forwarding is not configured or the provider
            is unreachable, 504 on upstream timeout, 502 on other failures
    """
    if provider_client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Provider forwarding not configured",
        )

    client_host = request.client.host if request.client else ""
    headers = build_provider_headers(settings, request.headers.items(), client_host)
    body = await request.body()

    logger.debug(
        "Forwarding provider request",
        extra={"method": request.method, "path": path},
    )

    try:
        upstream = await provider_client.request(
            request.method,
            "/" + path,
            params=list(request.query_params.multi_items()),
            headers=headers,
            content=body or None,
        )
    except httpx.TimeoutException:
        logger.error("Provider request timeout", extra={"path": path})
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail="Identity provider timeout",
        )
    except httpx.NetworkError as e:
        logger.error(f"Provider network error: {e}", extra={"path": path})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cannot reach identity provider",
        )
    except httpx.HTTPError as e:
        logger.error(f"Provider request failed: {e}", extra={"path": path})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider request failed",
        )

    response = Response(content=upstream.content, status_code=upstream.status_code)
    for name, values in filter_response_headers(upstream.headers).items():
        for value in values:
            response.headers.append(name, value)

    return response
