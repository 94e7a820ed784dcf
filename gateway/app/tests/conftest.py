"""
Shared fixtures for gateway tests.

The registry is backed by a real JSON file in tmp_path; the identity
provider, session verifier and reconciliation client are mocks injected
into app.state.app_state, so no test touches the network.
"""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from gateway.app.auth.reconciliation import ViewGuardCache
from gateway.app.auth.utils import SessionInfo
from gateway.app.config import Settings
from gateway.app.main import AppState, create_app
from gateway.app.models import ReconciliationResponse
from gateway.app.satellites.registry import RegistrySnapshot, SatelliteRegistry
from gateway.app.satellites.sources import parse_satellite_entries


SATELLITES_DOCUMENT = {
    "satellites": [
        {
            "id": "sat-1",
            "domain": "https://sat1.example.com",
            "displayName": "Satellite One",
            "enabled": True,
            "tenantId": "tenant-1",
            "addedDate": "2024-01-15T00:00:00Z",
            "branding": {
                "orgName": "Sat One",
                "fullName": "Satellite One Events Ltd",
                "tagline": "Events, simplified",
                "logo": {"type": "text", "primaryColor": "#0f172a", "secondaryColor": "#f8fafc"},
                "theme": {"primaryColor": "#0f172a"},
                "contact": {"email": "hello@sat1.example.com"},
                "social": {"linkedin": "https://linkedin.com/company/sat1"},
                "showOnAuth": {"header": True, "footer": True},
            },
        },
        {
            "id": "sat-2",
            "domain": "https://sat2.example.org",
            "displayName": "Satellite Two",
        },
        {
            "id": "sat-3",
            "domain": "https://retired.example.net",
            "displayName": "Retired Satellite",
            "enabled": False,
        },
    ]
}


def make_settings(**overrides) -> Settings:
    """Settings for tests: no .env, no delays, provider keys present."""
    values = {
        "PRIMARY_ORIGIN": "https://www.example.com",
        "SATELLITE_CONFIG_FILE": None,
        "SATELLITE_CONFIG_URL": None,
        "SATELLITE_DOMAINS": None,
        "SIGNOUT_SETTLE_SECONDS": 0.0,
        "SIGNOUT_GRACE_SECONDS": 2.0,
        "RECONCILIATION_DELAY_SECONDS": 0.0,
        "PROVIDER_SECRET_KEY": "sk_test_secret",
        "PROVIDER_PUBLISHABLE_KEY": "pk_test_publishable",
        "PROVIDER_FRONTEND_API_URL": "https://clerk.example.com",
        "PROVIDER_API_URL": "https://api.clerk.test/v1",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def satellites_file(tmp_path):
    path = tmp_path / "satellites.json"
    path.write_text(json.dumps(SATELLITES_DOCUMENT), encoding="utf-8")
    return path


@pytest.fixture
def settings(satellites_file):
    return make_settings(SATELLITE_CONFIG_FILE=str(satellites_file))


@pytest.fixture
def snapshot():
    records = parse_satellite_entries(SATELLITES_DOCUMENT["satellites"], "file")
    return RegistrySnapshot.build(records, "file", version=1)


@pytest.fixture
def mock_provider():
    provider = Mock()
    provider.sign_out = AsyncMock(return_value=None)
    return provider


@pytest.fixture
def mock_verifier():
    verifier = Mock()
    verifier.verify = AsyncMock(
        return_value=SessionInfo(user_id="user_123", session_id="sess_123", claims={"sub": "user_123"})
    )
    return verifier


@pytest.fixture
def mock_reconciliation_client():
    client = Mock()
    client.reconcile = AsyncMock(return_value=ReconciliationResponse(reconciliation_needed=True))
    return client


@pytest.fixture
def app_state(settings, mock_provider, mock_verifier, mock_reconciliation_client):
    state = AppState(settings)
    state.registry = SatelliteRegistry(settings)
    state.provider = mock_provider
    state.verifier = mock_verifier
    state.reconciliation_client = mock_reconciliation_client
    state.view_guards = ViewGuardCache(ttl_seconds=settings.VIEW_GUARD_TTL_SECONDS)
    return state


@pytest.fixture
def app(settings, app_state):
    app = create_app(settings)
    app.state.app_state = app_state
    return app


@pytest.fixture
def client(app):
    return TestClient(app)
