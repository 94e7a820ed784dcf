"""
FastAPI dependencies shared by the routers.

Everything is read from app.state: the Settings object given to create_app()
and the AppState built in the lifespan. Nothing here reads the environment.
"""

from typing import Any, Optional

import httpx
from fastapi import HTTPException, Request, status

from .config import Settings
from .satellites.registry import RegistrySnapshot


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_app_state(request: Request) -> Any:
    """
    Dependency to get the application state container.

    Raises:
        HTTPException: 503 if the lifespan has not initialized it
    """
    app_state = getattr(request.app.state, "app_state", None)
    if app_state is None or app_state.registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gateway not initialized",
        )
    return app_state


async def get_registry_snapshot(request: Request) -> RegistrySnapshot:
    """One registry snapshot for the whole request."""
    app_state = get_app_state(request)
    return await app_state.registry.get_snapshot()


def get_provider_client(request: Request) -> Optional[httpx.AsyncClient]:
    """HTTP client bound to the provider Frontend API, or None if not configured."""
    return get_app_state(request).provider_client
