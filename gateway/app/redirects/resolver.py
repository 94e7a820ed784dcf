"""
Redirect Resolver

Classifies a redirect_url as Relative, Primary, Satellite or Invalid.
Used for branding decisions on the auth pages, so satellite matching is
exact-hostname only: showing one organization's chrome for another's URL
is never acceptable.
"""

import logging
from typing import Optional

from ..errors import RedirectParseError
from ..models import AuthChrome, SatelliteRecord
from ..satellites.registry import RegistrySnapshot
from ..satellites.sources import synthesize_display_name
from .targets import (
    Invalid,
    Primary,
    RedirectTarget,
    Relative,
    Satellite,
    has_scheme,
    is_scheme_relative,
    normalize_redirect_value,
    parse_absolute_url,
    target_path,
)

logger = logging.getLogger("gateway.redirects.resolver")


def resolve_redirect(
    redirect_url: Optional[str],
    snapshot: RegistrySnapshot,
    primary_hostname: str,
) -> RedirectTarget:
    """
    Resolve a redirect_url string against the primary domain and registry.

    Args:
        redirect_url: Caller-supplied value (None/empty means "/")
        snapshot: Registry snapshot for the current request
        primary_hostname: Bare hostname of the primary origin

    Returns:
        Relative for scheme-less values, Primary or Satellite for known hosts,
        Invalid for everything else (including parse failures)
    """
    value = normalize_redirect_value(redirect_url or "")

    if not has_scheme(value):
        return Relative(value)

    try:
        parts = parse_absolute_url(value)
    except RedirectParseError as e:
        logger.warning(
            f"Rejected unparseable redirect URL: {e.reason}",
            extra={"reason": e.reason},
        )
        return Invalid(e.reason)

    hostname = parts.hostname
    path = target_path(parts)

    if hostname == primary_hostname.lower():
        return Primary(path)

    record = snapshot.resolve_by_hostname(hostname)
    if record is not None:
        return Satellite(record, path)

    logger.info("Redirect URL host is not a registered satellite", extra={"hostname": hostname})
    return Invalid(f"unregistered host '{hostname}'")


def extract_satellite(
    redirect_url: Optional[str],
    snapshot: RegistrySnapshot,
    primary_hostname: str,
) -> Optional[SatelliteRecord]:
    """Satellite record a redirect_url points at, or None."""
    target = resolve_redirect(redirect_url, snapshot, primary_hostname)
    if isinstance(target, Satellite):
        return target.record
    return None


def resolve_auth_chrome(
    redirect_url: Optional[str],
    snapshot: RegistrySnapshot,
    primary_hostname: str,
) -> AuthChrome:
    """
    Decide which chrome the shared auth pages show.

    Satellite header/footer only appear for an exact satellite match whose
    branding opts in via show_on_auth.
    """
    target = resolve_redirect(redirect_url, snapshot, primary_hostname)

    if isinstance(target, Satellite):
        branding = target.record.branding
        return AuthChrome(
            satellite=target.record,
            show_header=bool(branding and branding.show_on_auth.header),
            show_footer=bool(branding and branding.show_on_auth.footer),
            target_kind="satellite",
        )
    if isinstance(target, Primary):
        return AuthChrome(target_kind="primary")
    if isinstance(target, Relative):
        return AuthChrome(target_kind="relative")
    if isinstance(target, Invalid):
        return AuthChrome(target_kind="invalid")

    raise TypeError(f"Unhandled redirect target: {target!r}")


def navigation_location(target: RedirectTarget, redirect_url: Optional[str]) -> str:
    """
    Where to send the browser after sign-in.

    Relative, Primary and Satellite targets keep the caller's URL; Invalid
    targets and scheme-relative values ("//host") go to the primary home page.
    """
    if isinstance(target, Relative):
        return "/" if is_scheme_relative(target.path) else target.path
    if isinstance(target, (Primary, Satellite)):
        return normalize_redirect_value(redirect_url or "")
    if isinstance(target, Invalid):
        return "/"

    raise TypeError(f"Unhandled redirect target: {target!r}")


def satellite_display_name(hostname: Optional[str], snapshot: RegistrySnapshot) -> str:
    """
    Friendly name for a satellite hostname.

    Example: "www.mosc-temp.com" -> configured display name, or "Mosc Temp"
    """
    if not hostname:
        return "Unknown Domain"

    record = snapshot.resolve_by_hostname(hostname)
    if record is not None:
        return record.display_name

    return synthesize_display_name(hostname) or "Unknown Domain"
