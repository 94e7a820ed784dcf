"""
Gateway error taxonomy.

Security checks raise and fail closed (AllowListRejection); availability paths
catch ProviderCallError / ReconciliationError, log them and keep navigating.
"""

from typing import Optional


class GatewayError(Exception):
    """Base exception for gateway errors"""
    pass


class ConfigLoadError(GatewayError):
    """A satellite configuration source could not be read as a whole."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"[{source}] {message}")


class RedirectParseError(GatewayError):
    """A redirect_url carrying a scheme could not be parsed as an absolute URL."""

    def __init__(self, redirect_url: str, reason: str):
        self.redirect_url = redirect_url
        self.reason = reason
        super().__init__(f"Cannot parse redirect URL: {reason}")


class AllowListRejection(GatewayError):
    """The sign-out redirect target is not on the allow-list."""

    def __init__(self, redirect_url: str, hostname: Optional[str] = None):
        self.redirect_url = redirect_url
        self.hostname = hostname
        super().__init__("Invalid redirect URL")


class ProviderCallError(GatewayError):
    """The identity provider call failed (network, auth or upstream error)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ReconciliationError(GatewayError):
    """The profile reconciliation call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)
