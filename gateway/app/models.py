"""
Data Models Module

This module defines Pydantic models for configuration parsing, request/response
validation and data serialization throughout the gateway service.

Models are organized by functional area:
- Satellite models (records, branding, logo variants)
- Rendering-layer models (auth chrome decision)
- Reconciliation models (sign-in completion, reconciliation payloads)

JSON uses camelCase keys (satellites.json, reconciliation endpoint); Python
attributes are snake_case.
"""

from datetime import datetime, timezone
from typing import Annotated, Literal, Optional, Union
from urllib.parse import urlsplit

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


# ============================================================================
# Satellite Branding
# ============================================================================

class TextLogo(CamelModel):
    """Organization name rendered as text in the satellite colors."""
    type: Literal["text"]
    primary_color: str
    secondary_color: str


class ImageLogo(CamelModel):
    """Hosted logo image."""
    type: Literal["image"]
    url: str = Field(..., min_length=1)
    primary_color: str
    secondary_color: str


Logo = Annotated[Union[TextLogo, ImageLogo], Field(discriminator="type")]


class BrandTheme(CamelModel):
    primary_color: str = "#1f2937"
    hover_color: str = "#111827"
    active_color: str = "#030712"


class BrandContact(CamelModel):
    address: str = ""
    phone: str = ""
    toll_free: Optional[str] = None
    email: str = ""


class BrandSocial(CamelModel):
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    youtube: Optional[str] = None


class ShowOnAuth(CamelModel):
    """Whether satellite chrome replaces the primary chrome on auth pages."""
    header: bool = False
    footer: bool = False


class SatelliteBranding(CamelModel):
    """Branding shown on the shared auth pages for one satellite."""
    org_name: str = Field(..., min_length=1)
    full_name: str = ""
    tagline: str = ""
    logo: Logo
    theme: BrandTheme = Field(default_factory=BrandTheme)
    contact: BrandContact = Field(default_factory=BrandContact)
    social: BrandSocial = Field(default_factory=BrandSocial)
    show_on_auth: ShowOnAuth = Field(default_factory=ShowOnAuth)


# ============================================================================
# Satellite Record
# ============================================================================

class SatelliteRecord(CamelModel):
    """
    One cooperating satellite domain.

    Attributes:
        id: Stable unique identifier
        origin_url: Absolute origin including scheme (JSON key 'domain' or 'originUrl')
        hostname: Bare lower-case host, derived from origin_url when omitted
        display_name: Human-readable name shown during cross-domain flows
        enabled: Disabled records never enter a registry snapshot
        tenant_id: Optional business-tenant link, unused by auth
        branding: Optional satellite chrome for the auth pages
    """

    id: str = Field(..., min_length=1)
    origin_url: str = Field(
        ...,
        validation_alias=AliasChoices("origin_url", "originUrl", "domain"),
    )
    hostname: str = ""
    display_name: str = Field(..., min_length=1)
    enabled: bool = True
    tenant_id: Optional[str] = None
    added_date: Optional[str] = None
    branding: Optional[SatelliteBranding] = None

    @model_validator(mode="before")
    @classmethod
    def derive_hostname(cls, data):
        if isinstance(data, dict) and not data.get("hostname"):
            origin = data.get("origin_url") or data.get("originUrl") or data.get("domain")
            if isinstance(origin, str):
                data = {**data, "hostname": urlsplit(origin.strip()).hostname or ""}
        return data

    @field_validator("origin_url")
    @classmethod
    def validate_origin_url(cls, v: str) -> str:
        """
        Validate that the origin is a bare http(s) origin.

        Raises:
            ValueError: If scheme, host or shape is wrong
        """
        v = v.strip().rstrip("/")
        try:
            parts = urlsplit(v)
            parts.port
        except ValueError as e:
            raise ValueError(f"Invalid origin '{v}': {e}")

        if parts.scheme not in ("http", "https") or not parts.hostname:
            raise ValueError(
                f"Invalid origin '{v}'. Expected format: 'https://www.example.com'"
            )
        if parts.path or parts.query or parts.fragment:
            raise ValueError(f"Origin '{v}' must not contain a path, query or fragment")

        return f"{parts.scheme}://{parts.netloc.lower()}"

    @field_validator("hostname")
    @classmethod
    def validate_hostname(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("hostname is required")
        return v

    @model_validator(mode="after")
    def check_hostname_matches_origin(self) -> "SatelliteRecord":
        if urlsplit(self.origin_url).hostname != self.hostname:
            raise ValueError(
                f"hostname '{self.hostname}' does not match origin '{self.origin_url}'"
            )
        return self


# ============================================================================
# Rendering Layer
# ============================================================================

class AuthChrome(CamelModel):
    """What the rendering layer needs to decide header/footer on auth pages."""
    satellite: Optional[SatelliteRecord] = None
    show_header: bool = False
    show_footer: bool = False
    target_kind: Literal["relative", "primary", "satellite", "invalid"] = "relative"


class RegistryStats(CamelModel):
    total: int
    enabled: int
    with_tenant_id: int
    source: str
    version: int
    age_seconds: float
    ttl_seconds: int


# ============================================================================
# Reconciliation Models
# ============================================================================

def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ReconciliationRequest(CamelModel):
    """Payload posted to the reconciliation endpoint."""
    trigger_source: Literal["sign_in_flow"] = "sign_in_flow"
    timestamp: str = Field(default_factory=_utc_now_iso)


class ReconciliationResponse(CamelModel):
    model_config = ConfigDict(extra="allow")

    reconciliation_needed: bool = False


class SignInCompleteRequest(CamelModel):
    """Reported by the sign-in page once the provider SDK shows a signed-in user."""
    view_id: str = Field(..., min_length=8, max_length=128)
    redirect_url: str = "/"


class SignInCompleteResponse(CamelModel):
    redirect_url: str
    fired: bool
