"""
Allow-List Validator

Gates the final sign-out redirect. Looser than the resolver so that regional
or subdomain variants of a satellite keep working after sign-out.

ALLOWLIST_MODE:
- "substring" (default): host equals the primary host, equals a satellite
  host, or contains a satellite host anywhere. The containment rule accepts
  hosts such as "sat1.example.com.attacker.net" and is a known risk surface.
- "subdomain": host equals the primary or a satellite host, or is a
  subdomain of a satellite host. Scheme-relative ("//host") and
  backslash-prefixed values are rejected.
"""

import logging
from typing import Optional

from ..errors import AllowListRejection, RedirectParseError
from ..satellites.registry import RegistrySnapshot
from .targets import has_scheme, is_scheme_relative, normalize_redirect_value, parse_absolute_url

logger = logging.getLogger("gateway.redirects.allowlist")

SUBSTRING_MODE = "substring"
SUBDOMAIN_MODE = "subdomain"


def _host_allowed(
    hostname: str,
    snapshot: RegistrySnapshot,
    primary_hostname: str,
    mode: str,
) -> bool:
    if hostname == primary_hostname.lower():
        return True

    if snapshot.resolve_by_hostname(hostname) is not None:
        return True

    if mode == SUBDOMAIN_MODE:
        return any(hostname.endswith("." + satellite) for satellite in snapshot.hostnames())

    return any(satellite in hostname for satellite in snapshot.hostnames())


def check_redirect(
    redirect_url: Optional[str],
    snapshot: RegistrySnapshot,
    primary_hostname: str,
    mode: str = SUBSTRING_MODE,
) -> str:
    """
    Validate a sign-out redirect target.

    Returns:
        The normalized redirect value

    Raises:
        AllowListRejection: If the target is not allowed
    """
    value = normalize_redirect_value(redirect_url or "")

    if not has_scheme(value):
        if mode == SUBDOMAIN_MODE and is_scheme_relative(value):
            logger.warning("Rejected scheme-relative sign-out redirect")
            raise AllowListRejection(value)
        return value

    try:
        parts = parse_absolute_url(value)
    except RedirectParseError as e:
        logger.warning(
            f"Rejected unparseable sign-out redirect: {e.reason}",
            extra={"reason": e.reason},
        )
        raise AllowListRejection(value) from e

    if not _host_allowed(parts.hostname, snapshot, primary_hostname, mode):
        logger.warning(
            "Rejected sign-out redirect to host outside the allow-list",
            extra={"hostname": parts.hostname, "allowlist_mode": mode},
        )
        raise AllowListRejection(value, parts.hostname)

    return value


def is_allowed_redirect(
    redirect_url: Optional[str],
    snapshot: RegistrySnapshot,
    primary_hostname: str,
    mode: str = SUBSTRING_MODE,
) -> bool:
    """Boolean form of check_redirect."""
    try:
        check_redirect(redirect_url, snapshot, primary_hostname, mode)
    except AllowListRejection:
        return False
    return True
