"""
HTML shells for the shared auth pages.

The provider's browser SDK renders the actual sign-in/sign-up widget; these
pages only mount it, choose satellite or primary chrome, and report the
signed-in transition back to the gateway.
"""

import json
import math
from html import escape
from typing import Optional

from fastapi.responses import HTMLResponse

from ..config import Settings
from ..models import AuthChrome, SatelliteBranding

_BASE_STYLE = """
    * { margin: 0; padding: 0; box-sizing: border-box; }
    body {
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Helvetica, Arial, sans-serif;
        background: #f9fafb;
        min-height: 100vh;
        display: flex;
        flex-direction: column;
    }
    main { flex: 1; display: flex; align-items: center; justify-content: center; padding: 20px; }
    .container {
        background: white;
        border-radius: 12px;
        padding: 40px;
        max-width: 500px;
        width: 100%;
        box-shadow: 0 10px 40px rgba(0,0,0,0.1);
        text-align: center;
    }
    h1 { color: #1f2937; font-size: 24px; margin-bottom: 16px; }
    .message { color: #6b7280; font-size: 15px; line-height: 1.6; margin-bottom: 8px; }
    .sat-header, .sat-footer { padding: 16px 24px; color: white; }
    .sat-footer { font-size: 13px; }
    .sat-footer a { color: white; margin-right: 12px; }
    .logo-text { font-size: 20px; font-weight: 700; }
    .logo-image { max-height: 48px; }
"""


def _json_for_script(value) -> str:
    return json.dumps(value).replace("<", "\\u003c").replace(">", "\\u003e").replace("&", "\\u0026")


def _render_satellite_header(branding: SatelliteBranding) -> str:
    logo = branding.logo
    if logo.type == "image":
        logo_html = f'<img class="logo-image" src="{escape(logo.url)}" alt="{escape(branding.org_name)}">'
    else:
        logo_html = f'<span class="logo-text" style="color: {escape(logo.secondary_color)}">{escape(branding.org_name)}</span>'

    tagline = f"<div>{escape(branding.tagline)}</div>" if branding.tagline else ""
    return f"""
    <header class="sat-header" style="background: {escape(branding.theme.primary_color)}">
        {logo_html}
        {tagline}
    </header>
    """


def _render_satellite_footer(branding: SatelliteBranding) -> str:
    contact = branding.contact
    lines = [escape(part) for part in (branding.full_name or branding.org_name, contact.address, contact.phone, contact.email) if part]
    links = [
        f'<a href="{escape(url)}" rel="noopener">{name.title()}</a>'
        for name, url in branding.social.model_dump().items()
        if url
    ]
    return f"""
    <footer class="sat-footer" style="background: {escape(branding.theme.primary_color)}">
        <div>{" &middot; ".join(lines)}</div>
        <div>{"".join(links)}</div>
    </footer>
    """


def render_auth_page(
    page: str,
    chrome: AuthChrome,
    redirect_url: str,
    view_id: str,
    settings: Settings,
) -> HTMLResponse:
    """
    Render the sign-in or sign-up page shell.

    Args:
        page: "sign-in" or "sign-up"
        chrome: Resolved satellite chrome decision
        redirect_url: Raw redirect_url, passed back on completion
        view_id: Identifier of this page view (reconciliation guard key)
        settings: Application settings

    Returns:
        HTMLResponse mounting the provider widget
    """
    branding = chrome.satellite.branding if chrome.satellite else None
    header = _render_satellite_header(branding) if branding and chrome.show_header else ""
    footer = _render_satellite_footer(branding) if branding and chrome.show_footer else ""

    title = "Sign in" if page == "sign-in" else "Create account"
    if chrome.satellite:
        subtitle = f"Continue to {escape(chrome.satellite.display_name)}"
    else:
        subtitle = ""

    page_config = _json_for_script({
        "page": page,
        "viewId": view_id,
        "redirectUrl": redirect_url,
        "completeUrl": "/auth/sign-in/complete",
    })

    html_content = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <title>{title}</title>
        <style>{_BASE_STYLE}</style>
        <script
            async
            crossorigin="anonymous"
            data-clerk-publishable-key="{escape(settings.PROVIDER_PUBLISHABLE_KEY or '')}"
            data-clerk-proxy-url="{escape(settings.proxy_url)}"
            src="{escape(settings.PROVIDER_PATH_PREFIX)}/npm/@clerk/clerk-js@5/dist/clerk.browser.js"
            type="text/javascript"></script>
        <script>
            window.__AUTH_PAGE__ = {page_config};
            window.addEventListener("load", async function () {{
                var cfg = window.__AUTH_PAGE__;
                var reported = false;
                await window.Clerk.load();
                var mount = document.getElementById("auth-widget");
                if (cfg.page === "sign-up") {{
                    window.Clerk.mountSignUp(mount);
                }} else {{
                    window.Clerk.mountSignIn(mount);
                }}
                window.Clerk.addListener(function (state) {{
                    if (!state.user || reported) {{ return; }}
                    reported = true;
                    fetch(cfg.completeUrl, {{
                        method: "POST",
                        credentials: "same-origin",
                        headers: {{ "Content-Type": "application/json" }},
                        body: JSON.stringify({{ viewId: cfg.viewId, redirectUrl: cfg.redirectUrl }})
                    }})
                        .then(function (r) {{ return r.ok ? r.json() : {{ redirectUrl: "/" }}; }})
                        .catch(function () {{ return {{ redirectUrl: "/" }}; }})
                        .then(function (data) {{ window.location.href = data.redirectUrl; }});
                }});
            }});
        </script>
    </head>
    <body>
        {header}
        <main>
            <div class="container">
                <h1>{title}</h1>
                <p class="message">{subtitle}</p>
                <div id="auth-widget"></div>
            </div>
        </main>
        {footer}
    </body>
    </html>
    """

    return HTMLResponse(content=html_content, status_code=200)


def render_signout_error_page(
    message: Optional[str],
    fallback_location: str,
    delay_seconds: float,
    status_code: int = 400,
) -> HTMLResponse:
    """
    Render the sign-out error state.

    The page shows a generic message and still navigates to the fallback
    location after the grace delay.
    """
    location = escape(fallback_location, quote=True)
    delay = max(0, math.ceil(delay_seconds))

    html_content = f"""
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <meta charset="UTF-8">
        <meta name="viewport" content="width=device-width, initial-scale=1.0">
        <meta http-equiv="refresh" content="{delay};url={location}">
        <title>Sign out error</title>
        <style>{_BASE_STYLE}</style>
    </head>
    <body>
        <main>
            <div class="container">
                <h1>Sign out error</h1>
                <p class="message">{escape(message or "An error occurred while signing out.")}</p>
                <p class="message">Redirecting back in a moment...</p>
                <p class="message"><a href="{location}">Continue</a></p>
            </div>
        </main>
    </body>
    </html>
    """

    return HTMLResponse(content=html_content, status_code=status_code)
