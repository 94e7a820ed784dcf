"""
Authentication routes for the shared sign-in, sign-up and sign-out pages.

Satellites send the browser here with a redirect_url query parameter:
- /sign-in, /sign-up: provider widget with satellite chrome, followed by
  one profile reconciliation per page view
- /auth/signout-redirect: clears the primary session and returns to the
  satellite with the completion flag
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import RedirectResponse
from jose import JWTError
import httpx

from ..config import Settings
from ..dependencies import get_app_settings, get_app_state, get_registry_snapshot
from ..models import AuthChrome, RegistryStats, SignInCompleteRequest, SignInCompleteResponse
from ..redirects.resolver import navigation_location, resolve_auth_chrome, resolve_redirect
from ..satellites.registry import RegistrySnapshot
from .pages import render_auth_page, render_signout_error_page
from .reconciliation import ReconciliationTrigger
from .signout import INVALID_REDIRECT_MESSAGE, SignOutFlow

logger = logging.getLogger("gateway.auth.routes")


# =============================================================================
# Router Setup
# =============================================================================

auth_router = APIRouter(tags=["authentication"])

# Cookies the provider sets on the primary domain
PROVIDER_SESSION_COOKIES = ("__client_uat",)

REDIRECT_URL_QUERY = Query("/", description="Where to return after the auth action")


# =============================================================================
# Sign-in / Sign-up Pages
# =============================================================================

def _render_page(page: str, redirect_url: str, snapshot: RegistrySnapshot, settings: Settings):
    chrome = resolve_auth_chrome(redirect_url, snapshot, settings.primary_hostname)
    view_id = secrets.token_urlsafe(16)

    logger.info(
        f"Rendering {page} page",
        extra={"target_kind": chrome.target_kind, "satellite_id": chrome.satellite.id if chrome.satellite else None},
    )
    return render_auth_page(page, chrome, redirect_url or "/", view_id, settings)


@auth_router.get("/sign-in")
async def sign_in_page(
    redirect_url: str = REDIRECT_URL_QUERY,
    snapshot: RegistrySnapshot = Depends(get_registry_snapshot),
    settings: Settings = Depends(get_app_settings),
):
    """Shared sign-in page, branded for the satellite in redirect_url."""
    return _render_page("sign-in", redirect_url, snapshot, settings)


@auth_router.get("/sign-up")
async def sign_up_page(
    redirect_url: str = REDIRECT_URL_QUERY,
    snapshot: RegistrySnapshot = Depends(get_registry_snapshot),
    settings: Settings = Depends(get_app_settings),
):
    """Shared sign-up page, branded for the satellite in redirect_url."""
    return _render_page("sign-up", redirect_url, snapshot, settings)


@auth_router.get("/auth/context", response_model=AuthChrome)
async def auth_context(
    redirect_url: str = REDIRECT_URL_QUERY,
    snapshot: RegistrySnapshot = Depends(get_registry_snapshot),
    settings: Settings = Depends(get_app_settings),
):
    """
    Chrome decision for the rendering layer.

    Returns the resolved satellite (or null) and whether its header/footer
    replace the primary ones on auth pages.
    """
    return resolve_auth_chrome(redirect_url, snapshot, settings.primary_hostname)


@auth_router.get("/auth/satellites", response_model=RegistryStats)
async def satellite_stats(request: Request):
    """Registry statistics (counts only, no satellite details)."""
    app_state = get_app_state(request)
    await app_state.registry.get_snapshot()
    return app_state.registry.stats()


# =============================================================================
# Sign-in Completion (Reconciliation Trigger)
# =============================================================================

@auth_router.post("/auth/sign-in/complete", response_model=SignInCompleteResponse)
async def sign_in_complete(
    request: Request,
    payload: SignInCompleteRequest,
    snapshot: RegistrySnapshot = Depends(get_registry_snapshot),
    settings: Settings = Depends(get_app_settings),
):
    """
    Report that the provider SDK shows a signed-in user on a sign-in page view.

    The first report for a view triggers profile reconciliation; every report
    returns where the browser should go next.

    Raises:
        HTTPException: 401 if the session cookie is missing or invalid
    """
    app_state = get_app_state(request)
    session_token = request.cookies.get(settings.SESSION_COOKIE_NAME)

    if not session_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
        )

    try:
        await app_state.verifier.verify(session_token)
    except (JWTError, ValueError) as e:
        logger.warning(f"Sign-in completion with invalid session token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
        )
    except httpx.HTTPError as e:
        logger.error(f"Cannot fetch provider signing keys: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        )

    target = resolve_redirect(payload.redirect_url, snapshot, settings.primary_hostname)
    location = navigation_location(target, payload.redirect_url)

    trigger = await app_state.view_guards.get_or_create(
        payload.view_id,
        lambda: ReconciliationTrigger(
            app_state.reconciliation_client,
            location,
            delay_seconds=settings.RECONCILIATION_DELAY_SECONDS,
        ),
    )

    already_fired = trigger.fired
    navigation = await trigger.observe(True, session_token)

    return SignInCompleteResponse(redirect_url=navigation.location, fired=not already_fired)


# =============================================================================
# Sign-out Redirect
# =============================================================================

@auth_router.get("/auth/signout-redirect")
async def signout_redirect(
    request: Request,
    redirect_url: Optional[str] = REDIRECT_URL_QUERY,
    snapshot: RegistrySnapshot = Depends(get_registry_snapshot),
    settings: Settings = Depends(get_app_settings),
):
    """
    Sign out on the primary domain and return to the satellite.

    Success: 302 to redirect_url with the completion flag, session cookies
    expired. Allow-list rejection: 400 error page, provider not called.
    Provider failure: error page that still returns to redirect_url.
    """
    app_state = get_app_state(request)
    session_token = request.cookies.get(settings.SESSION_COOKIE_NAME)

    flow = SignOutFlow(
        app_state.provider,
        snapshot,
        settings,
        verifier=app_state.verifier,
    )
    outcome = await flow.run(redirect_url, session_token)

    if outcome.succeeded:
        response = RedirectResponse(url=outcome.location, status_code=status.HTTP_302_FOUND)
    else:
        rejected = outcome.message == INVALID_REDIRECT_MESSAGE
        response = render_signout_error_page(
            outcome.message,
            outcome.location,
            outcome.delay_seconds,
            status_code=status.HTTP_400_BAD_REQUEST if rejected else status.HTTP_200_OK,
        )
        if rejected:
            return response

    for cookie_name in (settings.SESSION_COOKIE_NAME, *PROVIDER_SESSION_COOKIES):
        response.delete_cookie(cookie_name, path="/")

    return response
