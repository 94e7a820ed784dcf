"""
Authentication utilities for provider session token verification and JWKS management.

This module handles:
- Fetching and caching the identity provider's JWKS (JSON Web Key Set)
- Verifying the session token cookie set on the primary domain
- Extracting the session and user identifiers the gateway needs
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwk, jwt

logger = logging.getLogger("gateway.auth.utils")


@dataclass(frozen=True)
class SessionInfo:
    """The facts the gateway consumes from a provider session."""
    user_id: str
    session_id: Optional[str]
    claims: Dict[str, Any] = field(default_factory=dict)


def get_signing_key(token: str, jwks: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Extract the public key from JWKS that matches the token's kid.

    Args:
        token: JWT token string
        jwks: JWKS document containing keys

    Returns:
        Matching key from JWKS, or None if not found

    Raises:
        JWTError: If token header is malformed
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise JWTError(f"Failed to decode token header: {e}")

    kid = unverified_header.get("kid")
    if not kid:
        raise JWTError("Token header missing 'kid' (Key ID)")

    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    return None


class SessionTokenVerifier:
    """
    Verifies provider session tokens against a cached JWKS.

    The JWKS is cached per instance for JWKS_CACHE_SECONDS and refetched
    once when a token's kid is unknown (key rotation).
    """

    def __init__(
        self,
        jwks_url: str,
        http_client: httpx.AsyncClient,
        cache_seconds: int = 3600,
        leeway_seconds: int = 10,
    ):
        self._jwks_url = jwks_url
        self._client = http_client
        self._cache_seconds = cache_seconds
        self._leeway = leeway_seconds
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at: float = 0.0

    async def fetch_jwks(self, force_refresh: bool = False) -> Dict[str, Any]:
        """
        Fetch JWKS from the provider with caching.

        Raises:
            httpx.HTTPError: If JWKS endpoint is unreachable
            ValueError: If response is invalid
        """
        current_time = time.time()

        if (
            not force_refresh
            and self._jwks
            and (current_time - self._jwks_fetched_at) < self._cache_seconds
        ):
            return self._jwks

        response = await self._client.get(self._jwks_url, timeout=10.0)
        response.raise_for_status()

        jwks_data = response.json()

        if "keys" not in jwks_data:
            raise ValueError("Invalid JWKS response: missing 'keys' field")

        self._jwks = jwks_data
        self._jwks_fetched_at = current_time

        return jwks_data

    async def verify(self, token: str, allow_expired: bool = False) -> SessionInfo:
        """
        Verify and decode a provider session token.

        Args:
            token: Session JWT from the session cookie
            allow_expired: Accept an expired but correctly signed token
                (sign-out must still find the session to revoke)

        Returns:
            SessionInfo for the token

        Raises:
            JWTError: If token is invalid, expired, or signature doesn't match
            ValueError: If required claims are missing
            httpx.HTTPError: If JWKS endpoint is unreachable
        """
        jwks = await self.fetch_jwks()

        signing_key = get_signing_key(token, jwks)
        if not signing_key:
            # Try refreshing JWKS in case keys were rotated
            jwks = await self.fetch_jwks(force_refresh=True)
            signing_key = get_signing_key(token, jwks)

            if not signing_key:
                raise JWTError("Unable to find matching signing key in JWKS")

        try:
            public_key = jwk.construct(signing_key, algorithm="RS256")
        except Exception as e:
            raise JWTError(f"Failed to construct public key from JWK: {e}")

        try:
            claims = jwt.decode(
                token,
                public_key.to_pem().decode("utf-8"),
                algorithms=["RS256"],
                options={
                    "verify_signature": True,
                    "verify_aud": False,
                    "verify_exp": not allow_expired,
                    "verify_nbf": True,
                    "verify_iat": True,
                    "leeway": self._leeway,
                },
            )
        except jwt.ExpiredSignatureError:
            raise JWTError("Session token has expired")
        except JWTError as e:
            raise JWTError(f"Token verification failed: {e}")

        user_id = claims.get("sub")
        if not user_id:
            raise ValueError("Session token missing 'sub' claim")

        return SessionInfo(user_id=user_id, session_id=claims.get("sid"), claims=claims)
