"""
Configuration module for the Satellite Auth Gateway.

This module uses Pydantic Settings to load and validate environment variables
for the primary domain, satellite registry sources, sign-out and
reconciliation timing, and the identity provider endpoints.

Environment variables are loaded from .env file or system environment.
The Settings object is built once at startup and handed to create_app();
components read it from app.state instead of touching the environment.
"""

import re
from functools import lru_cache
from typing import List, Literal, Optional
from urllib.parse import urlsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All configuration for the primary domain, satellite registry, auth bridge
    and identity provider communication is defined here.
    """

    # =========================================================================
    # Primary Domain
    # =========================================================================

    PRIMARY_ORIGIN: str = Field(
        default="http://localhost:8080",
        description="Origin where auth cookies are set (e.g., https://www.event-site-manager.com)",
    )

    # =========================================================================
    # Satellite Registry Sources
    # =========================================================================

    SATELLITE_CONFIG_FILE: Optional[str] = Field(
        default="config/satellites.json",
        description="Path to the structured satellites JSON document",
    )

    SATELLITE_CONFIG_URL: Optional[str] = Field(
        None,
        description="Remote URL serving the satellites JSON document (takes precedence over the file)",
    )

    SATELLITE_DOMAINS: Optional[str] = Field(
        None,
        description="Comma-separated satellite origins used when no structured config is available",
    )

    SATELLITE_CACHE_SECONDS: int = Field(
        default=300,
        description="Time to cache the satellite registry snapshot in seconds",
        ge=60,
        le=3600,
    )

    ALLOWLIST_MODE: Literal["substring", "subdomain"] = Field(
        default="substring",
        description="Sign-out redirect host matching: 'substring' (legacy) or 'subdomain' (hardened)",
    )

    # =========================================================================
    # Sign-out Bridge
    # =========================================================================

    SIGNOUT_FLAG_PARAM: str = Field(
        default="clerk_signout",
        description="Query flag appended to the satellite URL after a completed sign-out",
        min_length=1,
    )

    SIGNOUT_SETTLE_SECONDS: float = Field(
        default=0.5,
        description="Delay before navigating away after provider sign-out",
        ge=0.0,
        le=1.0,
    )

    SIGNOUT_GRACE_SECONDS: float = Field(
        default=2.0,
        description="Delay before the fallback redirect shown on the sign-out error page",
        ge=0.0,
        le=10.0,
    )

    # =========================================================================
    # Post Sign-in Reconciliation
    # =========================================================================

    RECONCILIATION_URL: str = Field(
        default="/api/auth/profile-reconciliation",
        description="Profile reconciliation endpoint (relative paths resolve against PRIMARY_ORIGIN)",
    )

    RECONCILIATION_DELAY_SECONDS: float = Field(
        default=1.0,
        description="Delay before navigating to redirect_url after reconciliation",
        ge=0.0,
        le=5.0,
    )

    RECONCILIATION_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Timeout for the reconciliation call",
        gt=0.0,
    )

    VIEW_GUARD_TTL_SECONDS: int = Field(
        default=1800,
        description="How long a sign-in page view keeps its reconciliation guard",
        ge=60,
    )

    # =========================================================================
    # Identity Provider
    # =========================================================================

    PROVIDER_PATH_PREFIX: str = Field(
        default="/__clerk",
        description="Reserved path namespace for the provider's browser SDK traffic",
    )

    PROVIDER_API_URL: str = Field(
        default="https://api.clerk.com/v1",
        description="Provider Backend API base URL",
    )

    PROVIDER_SECRET_KEY: Optional[str] = Field(
        None,
        description="Provider Backend API secret key",
    )

    PROVIDER_PUBLISHABLE_KEY: Optional[str] = Field(
        None,
        description="Provider publishable key for the browser SDK",
    )

    PROVIDER_FRONTEND_API_URL: Optional[str] = Field(
        None,
        description="Provider Frontend API URL that reserved-path requests are forwarded to",
    )

    PROVIDER_JWKS_URL: Optional[str] = Field(
        None,
        description="JWKS URL used to verify session tokens (defaults to <PROVIDER_API_URL>/jwks)",
    )

    JWKS_CACHE_SECONDS: int = Field(
        default=3600,
        description="Time to cache provider JWKS keys in seconds",
        ge=300,  # Min 5 minutes
        le=86400,  # Max 24 hours
    )

    SESSION_COOKIE_NAME: str = Field(
        default="__session",
        description="Cookie holding the provider session token on the primary domain",
    )

    # =========================================================================
    # Server
    # =========================================================================

    GATEWAY_HOST: str = Field(default="0.0.0.0")

    GATEWAY_PORT: int = Field(default=8080, ge=1, le=65535)

    LOG_LEVEL: str = Field(default="INFO")

    # =========================================================================
    # Pydantic Settings Configuration
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra env vars not defined here
    )

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def primary_hostname(self) -> str:
        """Bare lower-case hostname of the primary origin."""
        return urlsplit(self.PRIMARY_ORIGIN).hostname or ""

    @property
    def satellite_domains_list(self) -> List[str]:
        """
        Parse and return SATELLITE_DOMAINS as a clean list.

        Returns:
            List of origin strings without whitespace, or empty list.
        """
        if not self.SATELLITE_DOMAINS:
            return []

        return [
            domain.strip()
            for domain in self.SATELLITE_DOMAINS.split(",")
            if domain.strip()
        ]

    @property
    def reconciliation_url(self) -> str:
        """Absolute reconciliation endpoint URL."""
        if self.RECONCILIATION_URL.startswith(("http://", "https://")):
            return self.RECONCILIATION_URL
        return f"{self.PRIMARY_ORIGIN}/{self.RECONCILIATION_URL.lstrip('/')}"

    @property
    def provider_jwks_url(self) -> str:
        if self.PROVIDER_JWKS_URL:
            return self.PROVIDER_JWKS_URL
        return f"{self.PROVIDER_API_URL.rstrip('/')}/jwks"

    @property
    def proxy_url(self) -> str:
        """Public URL of the reserved provider namespace on the primary domain."""
        return f"{self.PRIMARY_ORIGIN}{self.PROVIDER_PATH_PREFIX}"

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("PRIMARY_ORIGIN")
    @classmethod
    def validate_primary_origin(cls, v: str) -> str:
        """
        Validate that PRIMARY_ORIGIN is a bare http(s) origin.

        Raises:
            ValueError: If the value has no host or carries a path
        """
        v = v.strip().rstrip("/")
        parts = urlsplit(v)

        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(
                f"Invalid PRIMARY_ORIGIN: '{v}'. "
                "Expected format: 'https://www.example.com'"
            )

        if parts.path or parts.query or parts.fragment:
            raise ValueError("PRIMARY_ORIGIN must not contain a path, query or fragment")

        return v

    @field_validator("PROVIDER_PATH_PREFIX")
    @classmethod
    def validate_path_prefix(cls, v: str) -> str:
        v = "/" + v.strip().strip("/")
        if v == "/":
            raise ValueError("PROVIDER_PATH_PREFIX cannot be the site root")
        return v

    @field_validator("SIGNOUT_FLAG_PARAM")
    @classmethod
    def validate_flag_param(cls, v: str) -> str:
        if not re.fullmatch(r"[A-Za-z0-9_\-]+", v):
            raise ValueError(
                f"SIGNOUT_FLAG_PARAM must be a plain query key, got: {v}"
            )
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

        if v.upper() not in allowed_levels:
            raise ValueError(
                f"LOG_LEVEL must be one of {allowed_levels}, got: {v}"
            )

        return v.upper()


# =============================================================================
# Settings Singleton
# =============================================================================

@lru_cache()
def get_settings() -> Settings:
    """
    Get or create a singleton Settings instance.

    This function is cached so that the settings are loaded only once
    during the application lifecycle.

    Returns:
        Settings instance with all configuration loaded and validated.

    Raises:
        ValidationError: If environment variables are invalid.
    """
    return Settings()


# =============================================================================
# Configuration Helpers
# =============================================================================

def validate_configuration(settings: Settings) -> dict:
    """
    Validate critical configuration settings and return a status report.

    Called during application startup; problems are logged, not raised,
    because an empty satellite registry is a valid state.

    Returns:
        Dictionary with validation status and any warnings.
    """
    errors = []
    warnings = []

    if not settings.PROVIDER_SECRET_KEY:
        warnings.append("PROVIDER_SECRET_KEY is not set (provider sign-out calls will fail)")

    if not settings.PROVIDER_FRONTEND_API_URL:
        warnings.append(
            f"PROVIDER_FRONTEND_API_URL is not set ({settings.PROVIDER_PATH_PREFIX} forwarding disabled)"
        )

    if not settings.SATELLITE_CONFIG_URL and not settings.SATELLITE_CONFIG_FILE and not settings.satellite_domains_list:
        warnings.append("No satellite source configured; registry will be empty")

    if settings.ALLOWLIST_MODE == "substring":
        warnings.append(
            "ALLOWLIST_MODE=substring accepts any host containing a satellite hostname; "
            "consider ALLOWLIST_MODE=subdomain"
        )

    if not settings.PRIMARY_ORIGIN.startswith("https://") and settings.primary_hostname not in ("localhost", "127.0.0.1"):
        errors.append("PRIMARY_ORIGIN must use https outside local development")

    return {
        "valid": len(errors) == 0,
        "errors": errors,
        "warnings": warnings,
        "primary_hostname": settings.primary_hostname,
        "allowlist_mode": settings.ALLOWLIST_MODE,
    }
