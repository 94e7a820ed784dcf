"""
Configuration Tests

Settings parsing, validators, derived URLs and the startup report.
"""

import pytest
from pydantic import ValidationError

from gateway.app.config import Settings, get_settings, validate_configuration

from .conftest import make_settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.PRIMARY_ORIGIN == "http://localhost:8080"
    assert settings.ALLOWLIST_MODE == "substring"
    assert settings.SIGNOUT_FLAG_PARAM == "clerk_signout"
    assert settings.PROVIDER_PATH_PREFIX == "/__clerk"
    assert settings.SESSION_COOKIE_NAME == "__session"


def test_primary_origin_is_normalized():
    settings = make_settings(PRIMARY_ORIGIN=" https://www.example.com/ ")

    assert settings.PRIMARY_ORIGIN == "https://www.example.com"
    assert settings.primary_hostname == "www.example.com"


@pytest.mark.parametrize("origin", ["www.example.com", "ftp://www.example.com", "https://www.example.com/app"])
def test_primary_origin_must_be_bare_origin(origin):
    with pytest.raises(ValidationError):
        make_settings(PRIMARY_ORIGIN=origin)


def test_path_prefix_is_normalized():
    assert make_settings(PROVIDER_PATH_PREFIX="__clerk/").PROVIDER_PATH_PREFIX == "/__clerk"

    with pytest.raises(ValidationError):
        make_settings(PROVIDER_PATH_PREFIX="/")


def test_flag_param_must_be_plain_key():
    with pytest.raises(ValidationError):
        make_settings(SIGNOUT_FLAG_PARAM="a=b&c")


def test_allowlist_mode_is_restricted():
    assert make_settings(ALLOWLIST_MODE="subdomain").ALLOWLIST_MODE == "subdomain"

    with pytest.raises(ValidationError):
        make_settings(ALLOWLIST_MODE="regex")


def test_delays_are_bounded():
    with pytest.raises(ValidationError):
        make_settings(SIGNOUT_SETTLE_SECONDS=5)

    with pytest.raises(ValidationError):
        make_settings(RECONCILIATION_DELAY_SECONDS=-1)


def test_log_level_is_upper_cased():
    assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    with pytest.raises(ValidationError):
        make_settings(LOG_LEVEL="verbose")


def test_satellite_domains_list():
    settings = make_settings(SATELLITE_DOMAINS=" https://a.example.com, ,b.example.org ")

    assert settings.satellite_domains_list == ["https://a.example.com", "b.example.org"]
    assert make_settings().satellite_domains_list == []


def test_derived_urls():
    settings = make_settings()

    assert settings.reconciliation_url == "https://www.example.com/api/auth/profile-reconciliation"
    assert settings.provider_jwks_url == "https://api.clerk.test/v1/jwks"
    assert settings.proxy_url == "https://www.example.com/__clerk"

    custom = make_settings(
        RECONCILIATION_URL="https://profiles.example.com/reconcile",
        PROVIDER_JWKS_URL="https://clerk.example.com/.well-known/jwks.json",
    )
    assert custom.reconciliation_url == "https://profiles.example.com/reconcile"
    assert custom.provider_jwks_url == "https://clerk.example.com/.well-known/jwks.json"


def test_settings_read_from_environment(monkeypatch):
    monkeypatch.setenv("PRIMARY_ORIGIN", "https://www.event-site-manager.com")
    monkeypatch.setenv("SATELLITE_DOMAINS", "https://www.mosc-temp.com")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.primary_hostname == "www.event-site-manager.com"
        assert settings.satellite_domains_list == ["https://www.mosc-temp.com"]
        assert get_settings() is settings
    finally:
        get_settings.cache_clear()


def test_validate_configuration_flags_plain_http_outside_localhost():
    report = validate_configuration(make_settings(PRIMARY_ORIGIN="http://www.example.com"))

    assert report["valid"] is False
    assert report["errors"]


def test_validate_configuration_allows_local_http():
    report = validate_configuration(make_settings(PRIMARY_ORIGIN="http://localhost:8080"))

    assert report["valid"] is True
    assert report["primary_hostname"] == "localhost"


def test_validate_configuration_warnings():
    report = validate_configuration(make_settings(PROVIDER_SECRET_KEY=None, PROVIDER_FRONTEND_API_URL=None))

    assert any("PROVIDER_SECRET_KEY" in warning for warning in report["warnings"])
    assert any("PROVIDER_FRONTEND_API_URL" in warning for warning in report["warnings"])
    assert any("ALLOWLIST_MODE" in warning for warning in report["warnings"])
    assert any("No satellite source" in warning for warning in report["warnings"])

    hardened = validate_configuration(make_settings(ALLOWLIST_MODE="subdomain"))
    assert not any("ALLOWLIST_MODE" in warning for warning in hardened["warnings"])
