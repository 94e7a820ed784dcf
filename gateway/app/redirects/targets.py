"""
Redirect target variants and URL helpers.

RedirectTarget is a closed set of four variants. Consumers must branch on
all of them; an Invalid target is never treated as a Relative one.
"""

import re
from dataclasses import dataclass
from typing import Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from ..errors import RedirectParseError
from ..models import SatelliteRecord

SCHEME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")

ALLOWED_SCHEMES = ("http", "https")

# Scheme-less values that browsers treat as "//host"
SCHEME_RELATIVE_PREFIXES = ("//", "\\", "/\\")

# Browsers drop these anywhere in a URL before parsing it
_STRIPPED_CHARS = re.compile(r"[\t\n\r]")


@dataclass(frozen=True)
class Relative:
    path: str


@dataclass(frozen=True)
class Primary:
    path: str


@dataclass(frozen=True)
class Satellite:
    record: SatelliteRecord
    path: str


@dataclass(frozen=True)
class Invalid:
    reason: str


RedirectTarget = Union[Relative, Primary, Satellite, Invalid]


def normalize_redirect_value(redirect_url: str) -> str:
    """
    Normalize a raw redirect_url the way a browser would read it.

    Leading/trailing C0 controls and spaces are removed, tabs and newlines
    are removed everywhere. An empty value becomes "/".
    """
    value = _STRIPPED_CHARS.sub("", redirect_url or "")
    value = value.strip("".join(chr(c) for c in range(0x21)))
    return value or "/"


def has_scheme(value: str) -> bool:
    return bool(SCHEME_PATTERN.match(value))


def is_scheme_relative(value: str) -> bool:
    """True for scheme-less values a browser resolves against another host."""
    return value.startswith(SCHEME_RELATIVE_PREFIXES)


def parse_absolute_url(redirect_url: str) -> SplitResult:
    """
    Parse an absolute http(s) URL.

    Backslashes are read as slashes, as browsers do for http(s), so the
    hostname returned is the one a browser would navigate to.

    Raises:
        RedirectParseError: On malformed URLs, other schemes, missing host,
            userinfo or an invalid port
    """
    try:
        parts = urlsplit(redirect_url.replace("\\", "/"))
        parts.port
    except ValueError as e:
        raise RedirectParseError(redirect_url, str(e)) from e

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise RedirectParseError(redirect_url, f"unsupported scheme '{parts.scheme}'")

    if not parts.hostname:
        raise RedirectParseError(redirect_url, "missing hostname")

    if parts.username is not None or "@" in parts.netloc:
        raise RedirectParseError(redirect_url, "userinfo not allowed")

    return parts


def target_path(parts: SplitResult) -> str:
    """Path, query and fragment of a parsed URL, defaulting to '/'."""
    return urlunsplit(("", "", parts.path or "/", parts.query, parts.fragment))


def append_query_flag(url: str, name: str, value: str = "true") -> str:
    """
    Append name=value to a URL's query string.

    Uses '&' when a query already exists and '?' otherwise; the flag is
    inserted before any fragment.

    Example:
        >>> append_query_flag("https://sat1.example.com/a?x=1", "clerk_signout")
        'https://sat1.example.com/a?x=1&clerk_signout=true'
    """
    parts = urlsplit(url)
    flag = f"{name}={value}"
    query = f"{parts.query}&{flag}" if parts.query else flag
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))
