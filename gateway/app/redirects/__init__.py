"""
Redirect Safety Package

- targets: RedirectTarget variants and URL helpers
- resolver: exact-match classification used for branding decisions
- allowlist: looser check gating the final sign-out redirect
"""

from .allowlist import check_redirect, is_allowed_redirect
from .resolver import (
    extract_satellite,
    navigation_location,
    resolve_auth_chrome,
    resolve_redirect,
    satellite_display_name,
)
from .targets import (
    Invalid,
    Primary,
    RedirectTarget,
    Relative,
    Satellite,
    append_query_flag,
)

__all__ = [
    "Invalid",
    "Primary",
    "RedirectTarget",
    "Relative",
    "Satellite",
    "append_query_flag",
    "check_redirect",
    "extract_satellite",
    "is_allowed_redirect",
    "navigation_location",
    "resolve_auth_chrome",
    "resolve_redirect",
    "satellite_display_name",
]
