"""
Post sign-in profile reconciliation.

When the sign-in page reports a signed-in user, the local profile is synced
with provider attributes exactly once for that page view, then the browser
is sent to redirect_url. Reconciliation failures are logged and never block
navigation; the provider webhook is expected to retry the sync elsewhere.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from ..errors import ReconciliationError
from ..models import ReconciliationRequest, ReconciliationResponse

logger = logging.getLogger("gateway.auth.reconciliation")


@dataclass(frozen=True)
class Navigation:
    location: str


class ReconciliationClient:
    """Calls the external reconciliation endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, url: str, timeout: float = 10.0):
        self._client = http_client
        self._url = url
        self._timeout = timeout

    async def reconcile(self, session_token: Optional[str] = None) -> ReconciliationResponse:
        """
        POST {triggerSource, timestamp} to the reconciliation endpoint.

        Raises:
            ReconciliationError: On network errors, non-2xx status or bad body
        """
        payload = ReconciliationRequest().model_dump(by_alias=True)
        headers = {"Content-Type": "application/json"}
        if session_token:
            headers["Authorization"] = f"Bearer {session_token}"

        try:
            response = await self._client.post(
                self._url,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            raise ReconciliationError(f"Reconciliation request failed: {e}") from e

        if not response.is_success:
            raise ReconciliationError(
                f"Reconciliation failed with HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return ReconciliationResponse.model_validate(response.json())
        except ValueError as e:
            raise ReconciliationError(f"Invalid reconciliation response: {e}") from e


class ReconciliationTrigger:
    """
    Edge-triggered, single-shot reconciliation for one sign-in page view.

    The guard is claimed before the network call, so concurrent or repeated
    observations of the same sign-in transition call the endpoint once.
    """

    def __init__(
        self,
        client: ReconciliationClient,
        location: str,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self._location = location
        self._delay = delay_seconds
        self._sleep = sleep
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def location(self) -> str:
        return self._location

    async def observe(self, signed_in: bool, session_token: Optional[str] = None) -> Optional[Navigation]:
        """
        Observe the current signed-in state.

        Returns:
            None while signed out; otherwise the Navigation to perform
        """
        if not signed_in:
            return None

        if self._fired:
            return Navigation(self._location)

        self._fired = True
        logger.info("User signed in, triggering profile reconciliation", extra={"location": self._location})

        try:
            result = await self._client.reconcile(session_token)
        except ReconciliationError as e:
            logger.error(
                f"Profile reconciliation failed: {e}",
                extra={"status_code": e.status_code},
            )
        else:
            if result.reconciliation_needed:
                logger.info("Profile was updated with provider data")
            else:
                logger.info("Profile was already up-to-date")

        await self._sleep(self._delay)
        return Navigation(self._location)


class ViewGuardCache:
    """
    In-memory TTL map of sign-in page views to their triggers.

    Keeps the idempotency guard alive for the lifetime of a page view.
    Uses asyncio.Lock; oldest entries are evicted past max_entries.
    """

    def __init__(
        self,
        ttl_seconds: int = 1800,
        max_entries: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: "OrderedDict[str, tuple]" = OrderedDict()
        self._lock = asyncio.Lock()
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    async def get_or_create(
        self,
        view_id: str,
        factory: Callable[[], ReconciliationTrigger],
    ) -> ReconciliationTrigger:
        async with self._lock:
            now = self._clock()
            self._purge_expired(now)

            entry = self._entries.get(view_id)
            if entry is not None:
                return entry[1]

            trigger = factory()
            self._entries[view_id] = (now + self._ttl, trigger)

            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

            return trigger
