"""
Cross-domain sign-out bridge.

A satellite sends the browser to /auth/signout-redirect?redirect_url=<satellite
URL>. The flow clears the primary-domain session and sends the browser back
with a completion flag so the satellite can drop its own client state.

States:
    IDLE -> SIGNING_OUT -> REDIRECTING -> DONE
    IDLE -> ERROR          (allow-list rejection, provider never called)
    SIGNING_OUT -> ERROR   (provider failure, fallback redirect without flag)
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, List, Optional

import httpx
from jose import JWTError

from ..config import Settings
from ..errors import AllowListRejection, ProviderCallError
from ..redirects.allowlist import check_redirect
from ..redirects.targets import append_query_flag
from ..satellites.registry import RegistrySnapshot
from .provider import IdentityProvider, SignOutOptions
from .utils import SessionTokenVerifier

logger = logging.getLogger("gateway.auth.signout")

INVALID_REDIRECT_MESSAGE = "Invalid redirect URL"
SIGNOUT_FAILED_MESSAGE = "An error occurred while signing out."


class SignOutState(str, Enum):
    IDLE = "idle"
    SIGNING_OUT = "signing_out"
    REDIRECTING = "redirecting"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS = {
    SignOutState.IDLE: {SignOutState.SIGNING_OUT, SignOutState.ERROR},
    SignOutState.SIGNING_OUT: {SignOutState.REDIRECTING, SignOutState.ERROR},
    SignOutState.REDIRECTING: {SignOutState.DONE},
    SignOutState.DONE: set(),
    SignOutState.ERROR: set(),
}


@dataclass(frozen=True)
class SignOutOutcome:
    """
    Result of one sign-out attempt.

    Attributes:
        state: DONE or ERROR
        location: Where the browser goes next
        delay_seconds: How long the error page waits before navigating
        message: User-visible error message (ERROR only)
    """
    state: SignOutState
    location: str
    delay_seconds: float = 0.0
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SignOutState.DONE


class SignOutFlow:
    """
    Single-use state machine for one sign-out request.

    Args:
        provider: Identity provider used for the sign-out call
        snapshot: Registry snapshot for this request
        settings: Application settings (flag name, delays, allow-list mode)
        verifier: Optional session token verifier to find the session id
        sleep: Awaitable sleep, replaceable in tests
    """

    def __init__(
        self,
        provider: IdentityProvider,
        snapshot: RegistrySnapshot,
        settings: Settings,
        verifier: Optional[SessionTokenVerifier] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._provider = provider
        self._snapshot = snapshot
        self._settings = settings
        self._verifier = verifier
        self._sleep = sleep
        self.state = SignOutState.IDLE
        self.history: List[SignOutState] = [SignOutState.IDLE]

    def _transition(self, new_state: SignOutState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal sign-out transition {self.state.value} -> {new_state.value}")

        logger.debug(f"Sign-out state {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    async def _resolve_session_id(self, session_token: Optional[str]) -> Optional[str]:
        if not session_token or self._verifier is None:
            return None

        try:
            session = await self._verifier.verify(session_token, allow_expired=True)
        except (JWTError, ValueError) as e:
            logger.warning(f"Ignoring unverifiable session token during sign-out: {e}")
            return None
        except httpx.HTTPError as e:
            raise ProviderCallError(f"Cannot fetch provider signing keys: {e}") from e

        return session.session_id

    async def run(self, redirect_url: Optional[str], session_token: Optional[str] = None) -> SignOutOutcome:
        """
        Execute the sign-out flow.

        Args:
            redirect_url: Satellite (or relative) URL to return to
            session_token: Provider session cookie value, if any

        Returns:
            SignOutOutcome describing the final navigation
        """
        if self.state is not SignOutState.IDLE:
            raise RuntimeError("SignOutFlow instances are single-use")

        try:
            target = check_redirect(
                redirect_url,
                self._snapshot,
                self._settings.primary_hostname,
                self._settings.ALLOWLIST_MODE,
            )
        except AllowListRejection as e:
            logger.warning(
                "Sign-out halted: redirect URL rejected",
                extra={"hostname": e.hostname},
            )
            self._transition(SignOutState.ERROR)
            return SignOutOutcome(
                state=SignOutState.ERROR,
                location="/",
                delay_seconds=self._settings.SIGNOUT_GRACE_SECONDS,
                message=INVALID_REDIRECT_MESSAGE,
            )

        self._transition(SignOutState.SIGNING_OUT)
        logger.info("Signing out on primary domain", extra={"redirect_url": target})

        try:
            session_id = await self._resolve_session_id(session_token)
            await self._provider.sign_out(SignOutOptions(session_id=session_id, redirect_url=None))
        except ProviderCallError as e:
            logger.error(
                f"Provider sign-out failed: {e}",
                extra={"status_code": e.status_code, "redirect_url": target},
            )
            self._transition(SignOutState.ERROR)
            return SignOutOutcome(
                state=SignOutState.ERROR,
                location=target,
                delay_seconds=self._settings.SIGNOUT_GRACE_SECONDS,
                message=SIGNOUT_FAILED_MESSAGE,
            )

        self._transition(SignOutState.REDIRECTING)

        # Let the provider's own cookie clearing settle before navigating
        await self._sleep(self._settings.SIGNOUT_SETTLE_SECONDS)

        location = append_query_flag(target, self._settings.SIGNOUT_FLAG_PARAM)
        self._transition(SignOutState.DONE)

        logger.info("Sign-out complete, redirecting", extra={"location": location})
        return SignOutOutcome(state=SignOutState.DONE, location=location)
