"""
FastAPI Gateway Application Factory
===================================

Main entry point for the satellite auth gateway running on the primary
domain. Satellite domains send their users here to sign in, sign up and
sign out, and reach the identity provider through the reserved prefix.

Architecture:
    Satellite site → Gateway (this service) → Identity provider
                                            → Reconciliation endpoint

Routers:
    - /sign-in, /sign-up   : Shared auth pages with satellite branding
    - /auth/*              : Sign-out bridge, sign-in completion, context
    - /__clerk/*           : Provider Frontend API forwarding (+ CORS)
    - /health              : Health check endpoint

Environment Variables:
    - PRIMARY_ORIGIN: Primary origin (e.g., "https://www.example.com")
    - SATELLITE_CONFIG_FILE / SATELLITE_CONFIG_URL: Structured satellite source
    - SATELLITE_DOMAINS: Comma-separated fallback satellite origins
    - PROVIDER_SECRET_KEY, PROVIDER_PUBLISHABLE_KEY: Identity provider keys
    - PROVIDER_FRONTEND_API_URL: Target of the reserved prefix
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn gateway.app.main:app --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn gateway.app.main:app --host 0.0.0.0 --port 8080 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import httpx
import uvicorn

from .auth.provider import BackendAPIProvider, IdentityProvider
from .auth.reconciliation import ReconciliationClient, ViewGuardCache
from .auth.routes import auth_router
from .auth.utils import SessionTokenVerifier
from .config import Settings, get_settings, validate_configuration
from .proxy.cors import ProviderCORSMiddleware
from .proxy.routes import provider_router
from .satellites.registry import SatelliteRegistry

SERVICE_NAME = "satellite-auth-gateway"
SERVICE_VERSION = "1.0.0"


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Application state container.

    Holds the shared resources built at startup: the satellite registry,
    HTTP clients, the identity provider and the reconciliation guards.
    """
    def __init__(self, settings: Settings):
        self.settings = settings
        self.registry: Optional[SatelliteRegistry] = None
        self.http_client: Optional[httpx.AsyncClient] = None
        self.provider_client: Optional[httpx.AsyncClient] = None
        self.provider: Optional[IdentityProvider] = None
        self.verifier: Optional[SessionTokenVerifier] = None
        self.reconciliation_client: Optional[ReconciliationClient] = None
        self.view_guards: Optional[ViewGuardCache] = None

    async def close(self) -> None:
        for client in (self.http_client, self.provider_client):
            if client is not None:
                await client.aclose()


def build_app_state(settings: Settings) -> AppState:
    """
    Wire up every shared component from settings.

    Args:
        settings: Application settings

    Returns:
        AppState with clients created but the registry not yet loaded
    """
    state = AppState(settings)

    state.http_client = httpx.AsyncClient(timeout=httpx.Timeout(10.0, connect=5.0))

    if settings.PROVIDER_FRONTEND_API_URL:
        state.provider_client = httpx.AsyncClient(
            base_url=settings.PROVIDER_FRONTEND_API_URL,
            timeout=httpx.Timeout(30.0, connect=10.0),
        )

    state.registry = SatelliteRegistry(settings, state.http_client)
    state.provider = BackendAPIProvider(
        state.http_client,
        settings.PROVIDER_API_URL,
        settings.PROVIDER_SECRET_KEY,
    )
    state.verifier = SessionTokenVerifier(
        settings.provider_jwks_url,
        state.http_client,
        cache_seconds=settings.JWKS_CACHE_SECONDS,
    )
    state.reconciliation_client = ReconciliationClient(
        state.http_client,
        settings.reconciliation_url,
        timeout=settings.RECONCILIATION_TIMEOUT_SECONDS,
    )
    state.view_guards = ViewGuardCache(ttl_seconds=settings.VIEW_GUARD_TTL_SECONDS)

    return state


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Build the AppState (unless one was injected, e.g. by tests)
        - Load the satellite registry
        - Log configuration warnings

    Shutdown tasks:
        - Close the HTTP clients created at startup
    """
    settings: Settings = app.state.settings
    logger = logging.getLogger("gateway.main")

    owned_state = None
    if getattr(app.state, "app_state", None) is None:
        owned_state = build_app_state(settings)
        app.state.app_state = owned_state

    logger.info(
        "Starting gateway service",
        extra={
            "primary_origin": settings.PRIMARY_ORIGIN,
            "allowlist_mode": settings.ALLOWLIST_MODE,
            "log_level": settings.LOG_LEVEL,
        }
    )

    report = validate_configuration(settings)
    for error in report["errors"]:
        logger.error(f"Configuration error: {error}")
    for warning in report["warnings"]:
        logger.warning(f"Configuration warning: {warning}")

    snapshot = await app.state.app_state.registry.refresh()
    logger.info(
        "Gateway service started successfully",
        extra={
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "satellites": len(snapshot),
            "satellite_source": snapshot.source,
        }
    )

    yield

    logger.info("Shutting down gateway service")
    if owned_state is not None:
        await owned_state.close()
        app.state.app_state = None
    logger.info("Gateway service shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - Provider-prefix CORS middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Explicit settings; loaded from the environment when omitted

    Returns:
        FastAPI: Configured application instance
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Satellite Auth Gateway",
        description="Shared sign-in and cross-domain sign-out for satellite domains",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )
    app.state.settings = settings
    app.state.app_state = None

    app.add_middleware(
        ProviderCORSMiddleware,
        path_prefix=settings.PROVIDER_PATH_PREFIX,
    )

    # Auth router: shared pages, sign-out bridge, sign-in completion
    app.include_router(auth_router)

    # Provider router: forwards the reserved prefix to the Frontend API
    app.include_router(
        provider_router,
        prefix=settings.PROVIDER_PATH_PREFIX,
    )

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """
        Health check endpoint.

        Returns:
            dict: Service health information
        """
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION
        }

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        """Service metadata and available endpoints."""
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "description": "Shared sign-in and cross-domain sign-out for satellite domains",
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "sign_in": "/sign-in",
                "sign_up": "/sign-up",
                "signout_redirect": "/auth/signout-redirect",
                "provider": settings.PROVIDER_PATH_PREFIX,
            }
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("gateway.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )

    return app


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(
        "gateway.app.main:app",
        host=settings.GATEWAY_HOST,
        port=settings.GATEWAY_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )
