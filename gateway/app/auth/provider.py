"""
Identity provider client.

The gateway only needs one provider primitive: sign a session out without
any provider-managed navigation. The gateway owns the final redirect so it
can append the completion flag.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import httpx

from ..errors import ProviderCallError

logger = logging.getLogger("gateway.auth.provider")


@dataclass(frozen=True)
class SignOutOptions:
    session_id: Optional[str] = None
    redirect_url: Optional[str] = None


class IdentityProvider(ABC):
    """Interface to the external identity provider."""

    @abstractmethod
    async def sign_out(self, options: SignOutOptions) -> None:
        """
        End a session.

        Raises:
            ProviderCallError: If the provider call fails
        """


class BackendAPIProvider(IdentityProvider):
    """
    Signs sessions out through the provider's Backend API
    (POST /sessions/{session_id}/revoke with the secret key).
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_url: str,
        secret_key: Optional[str],
        timeout: float = 10.0,
    ):
        self._client = http_client
        self._api_url = api_url.rstrip("/")
        self._secret_key = secret_key
        self._timeout = timeout

    async def sign_out(self, options: SignOutOptions) -> None:
        if options.redirect_url is not None:
            raise ValueError("Provider-managed redirects are not supported; the gateway navigates itself")

        if not options.session_id:
            logger.info("No active provider session to revoke")
            return

        if not self._secret_key:
            raise ProviderCallError("PROVIDER_SECRET_KEY not configured")

        url = f"{self._api_url}/sessions/{quote(options.session_id, safe='')}/revoke"

        try:
            response = await self._client.post(
                url,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderCallError(f"Provider sign-out timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderCallError(f"Provider sign-out failed: {e}") from e

        if not response.is_success:
            raise ProviderCallError(
                f"Provider sign-out failed with HTTP {response.status_code}",
                status_code=response.status_code,
            )

        logger.info(
            "Provider session revoked",
            extra={"session_id": options.session_id},
        )
