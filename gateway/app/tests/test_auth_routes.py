"""
Auth Route Tests
================

Tests for gateway/app/auth/routes.py and the application factory.

Test Coverage:
--------------
1. Sign-out redirect: success, allow-list rejection, provider failure
2. Shared sign-in/sign-up pages with satellite chrome
3. Sign-in completion: one reconciliation per page view
4. Auth context and registry stats endpoints
5. Health and uninitialized-state handling
"""

from unittest.mock import AsyncMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient
from jose import JWTError

from gateway.app.auth.provider import SignOutOptions
from gateway.app.auth.signout import INVALID_REDIRECT_MESSAGE, SIGNOUT_FAILED_MESSAGE
from gateway.app.errors import ProviderCallError, ReconciliationError
from gateway.app.main import create_app


VIEW_ID = "view-0123456789abcdef"


def deleted_cookie_names(response):
    return {
        header.split("=", 1)[0]
        for header in response.headers.get_list("set-cookie")
        if "Max-Age=0" in header
    }


# ============================================================================
# Sign-out Redirect
# ============================================================================

class TestSignOutRedirect:
    """Test suite for /auth/signout-redirect"""

    def test_redirects_back_with_flag(self, client, mock_provider):
        response = client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "https://sat1.example.com/dashboard?x=1"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "https://sat1.example.com/dashboard?x=1&clerk_signout=true"
        assert {"__session", "__client_uat"} <= deleted_cookie_names(response)
        mock_provider.sign_out.assert_awaited_once()

    def test_session_cookie_identifies_session_to_revoke(self, client, mock_provider, mock_verifier):
        client.cookies.set("__session", "session-token")

        client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "https://sat2.example.org/"},
            follow_redirects=False,
        )

        mock_verifier.verify.assert_awaited_once_with("session-token", allow_expired=True)
        mock_provider.sign_out.assert_awaited_once_with(SignOutOptions(session_id="sess_123", redirect_url=None))

    def test_missing_redirect_url_goes_home(self, client):
        response = client.get("/auth/signout-redirect", follow_redirects=False)

        assert response.status_code == status.HTTP_302_FOUND
        assert response.headers["location"] == "/?clerk_signout=true"

    def test_rejected_redirect_shows_error_without_signing_out(self, client, mock_provider):
        response = client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "https://evil.example.com/"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert INVALID_REDIRECT_MESSAGE in response.text
        assert 'content="2;url=/"' in response.text
        assert "evil.example.com" not in response.text
        assert deleted_cookie_names(response) == set()
        mock_provider.sign_out.assert_not_awaited()

    def test_backslash_spoof_is_rejected_without_signing_out(self, client, mock_provider):
        response = client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "https://evil.example.com\\@sat1.example.com/welcome"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'content="2;url=/"' in response.text
        mock_provider.sign_out.assert_not_awaited()

    def test_javascript_redirect_is_rejected(self, client, mock_provider):
        response = client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "javascript:alert(document.cookie)"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_provider.sign_out.assert_not_awaited()

    def test_provider_failure_returns_to_satellite_without_flag(self, client, mock_provider):
        mock_provider.sign_out.side_effect = ProviderCallError("upstream 500", status_code=500)

        response = client.get(
            "/auth/signout-redirect",
            params={"redirect_url": "https://sat1.example.com/dashboard"},
            follow_redirects=False,
        )

        assert response.status_code == status.HTTP_200_OK
        assert SIGNOUT_FAILED_MESSAGE in response.text
        assert 'content="2;url=https://sat1.example.com/dashboard"' in response.text
        assert "clerk_signout" not in response.text
        assert "__session" in deleted_cookie_names(response)


# ============================================================================
# Shared Auth Pages
# ============================================================================

class TestAuthPages:
    """Test suite for /sign-in and /sign-up"""

    def test_sign_in_page_shows_satellite_chrome(self, client):
        response = client.get("/sign-in", params={"redirect_url": "https://sat1.example.com/events"})

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert 'class="sat-header"' in response.text
        assert 'class="sat-footer"' in response.text
        assert "Continue to Satellite One" in response.text
        assert "Satellite One Events Ltd" in response.text
        assert 'src="/__clerk/npm/@clerk/clerk-js@5/dist/clerk.browser.js"' in response.text
        assert 'data-clerk-publishable-key="pk_test_publishable"' in response.text
        assert 'data-clerk-proxy-url="https://www.example.com/__clerk"' in response.text

    def test_unbranded_satellite_uses_primary_chrome(self, client):
        response = client.get("/sign-up", params={"redirect_url": "https://sat2.example.org/"})

        assert response.status_code == 200
        assert 'class="sat-header"' not in response.text
        assert "Continue to Satellite Two" in response.text
        assert "Create account" in response.text

    def test_lookalike_host_gets_no_satellite_chrome(self, client):
        response = client.get("/sign-in", params={"redirect_url": "https://sat1.example.com.attacker.net/"})

        assert response.status_code == 200
        assert 'class="sat-header"' not in response.text
        assert "Continue to" not in response.text

    def test_redirect_url_cannot_break_out_of_script(self, client):
        payload = "/</script><script>alert(1)</script>"

        response = client.get("/sign-in", params={"redirect_url": payload})

        assert "</script><script>alert(1)" not in response.text
        assert "\\u003c/script\\u003e" in response.text

    def test_backslash_spoof_gets_no_satellite_chrome(self, client):
        response = client.get(
            "/sign-in",
            params={"redirect_url": "https://evil.example.com\\@sat1.example.com/welcome"},
        )

        assert response.status_code == 200
        assert 'class="sat-header"' not in response.text
        assert "Continue to" not in response.text

    def test_each_page_view_gets_its_own_view_id(self, client):
        first = client.get("/sign-in").text
        second = client.get("/sign-in").text

        def view_id(page):
            return page.split('"viewId": "', 1)[1].split('"', 1)[0]

        assert view_id(first) != view_id(second)


# ============================================================================
# Sign-in Completion
# ============================================================================

class TestSignInComplete:
    """Test suite for /auth/sign-in/complete"""

    def test_requires_session_cookie(self, client, mock_reconciliation_client):
        response = client.post(
            "/auth/sign-in/complete",
            json={"viewId": VIEW_ID, "redirectUrl": "https://sat1.example.com/"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        mock_reconciliation_client.reconcile.assert_not_awaited()

    def test_rejects_invalid_session(self, client, mock_verifier, mock_reconciliation_client):
        mock_verifier.verify.side_effect = JWTError("expired")
        client.cookies.set("__session", "stale-token")

        response = client.post(
            "/auth/sign-in/complete",
            json={"viewId": VIEW_ID, "redirectUrl": "/"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        mock_reconciliation_client.reconcile.assert_not_awaited()

    def test_reconciles_once_per_page_view(self, client, mock_reconciliation_client):
        client.cookies.set("__session", "session-token")
        body = {"viewId": VIEW_ID, "redirectUrl": "https://sat1.example.com/events"}

        first = client.post("/auth/sign-in/complete", json=body)
        second = client.post("/auth/sign-in/complete", json=body)

        assert first.status_code == 200
        assert first.json() == {"redirectUrl": "https://sat1.example.com/events", "fired": True}
        assert second.json() == {"redirectUrl": "https://sat1.example.com/events", "fired": False}
        mock_reconciliation_client.reconcile.assert_awaited_once_with("session-token")

    def test_new_page_view_reconciles_again(self, client, mock_reconciliation_client):
        client.cookies.set("__session", "session-token")

        client.post("/auth/sign-in/complete", json={"viewId": VIEW_ID, "redirectUrl": "/"})
        client.post("/auth/sign-in/complete", json={"viewId": VIEW_ID + "-2", "redirectUrl": "/"})

        assert mock_reconciliation_client.reconcile.await_count == 2

    def test_reconciliation_failure_still_navigates(self, client, mock_reconciliation_client):
        mock_reconciliation_client.reconcile = AsyncMock(side_effect=ReconciliationError("down"))
        client.cookies.set("__session", "session-token")

        response = client.post(
            "/auth/sign-in/complete",
            json={"viewId": VIEW_ID, "redirectUrl": "https://sat2.example.org/welcome"},
        )

        assert response.status_code == 200
        assert response.json()["redirectUrl"] == "https://sat2.example.org/welcome"

    def test_invalid_redirect_navigates_home(self, client):
        client.cookies.set("__session", "session-token")

        response = client.post(
            "/auth/sign-in/complete",
            json={"viewId": VIEW_ID, "redirectUrl": "javascript:alert(1)"},
        )

        assert response.json()["redirectUrl"] == "/"

    @pytest.mark.parametrize("redirect_url", [
        "https://evil.example.com\\@sat1.example.com/welcome",
        "//evil.example.com/welcome",
        "/\\evil.example.com",
    ])
    def test_off_site_redirects_navigate_home(self, client, redirect_url):
        client.cookies.set("__session", "session-token")

        response = client.post(
            "/auth/sign-in/complete",
            json={"viewId": VIEW_ID, "redirectUrl": redirect_url},
        )

        assert response.status_code == 200
        assert response.json()["redirectUrl"] == "/"

    def test_view_id_is_validated(self, client):
        client.cookies.set("__session", "session-token")

        response = client.post("/auth/sign-in/complete", json={"viewId": "short"})

        assert response.status_code == 422


# ============================================================================
# Context, Stats and System Endpoints
# ============================================================================

def test_auth_context_for_satellite(client):
    response = client.get("/auth/context", params={"redirect_url": "https://sat1.example.com/"})

    data = response.json()
    assert response.status_code == 200
    assert data["targetKind"] == "satellite"
    assert data["showHeader"] is True
    assert data["satellite"]["id"] == "sat-1"
    assert data["satellite"]["displayName"] == "Satellite One"
    assert data["satellite"]["originUrl"] == "https://sat1.example.com"


def test_auth_context_for_relative_url(client):
    data = client.get("/auth/context", params={"redirect_url": "/dashboard"}).json()

    assert data["targetKind"] == "relative"
    assert data["satellite"] is None
    assert data["showHeader"] is False


def test_satellite_stats(client):
    response = client.get("/auth/satellites")

    assert response.status_code == 200
    assert response.json() == {
        "total": 3,
        "enabled": 2,
        "withTenantId": 1,
        "source": "file",
        "version": 1,
        "ageSeconds": pytest.approx(0, abs=5),
        "ttlSeconds": 300,
    }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_lists_endpoints(client):
    data = client.get("/").json()

    assert data["endpoints"]["signout_redirect"] == "/auth/signout-redirect"
    assert data["endpoints"]["provider"] == "/__clerk"


def test_uninitialized_gateway_returns_503(settings):
    app = create_app(settings)

    response = TestClient(app).get("/auth/context")

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_lifespan_builds_and_closes_state(settings):
    app = create_app(settings)

    with TestClient(app) as client:
        assert app.state.app_state is not None
        assert app.state.app_state.provider_client is not None
        response = client.get("/auth/context", params={"redirect_url": "https://sat2.example.org/"})
        assert response.json()["satellite"]["id"] == "sat-2"

    assert app.state.app_state is None
