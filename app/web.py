"""HTML page rendering for the configure page and the SIMKL callback."""

from __future__ import annotations

import json
from html import escape
from textwrap import dedent

from .config import Settings


PAGE_STYLE = dedent(
    """
    <style>
        :root {
            color-scheme: dark;
            font-family: 'Inter', 'Segoe UI', system-ui, -apple-system, sans-serif;
            --surface: #141414;
            --text-primary: #f5f5f5;
            --text-muted: #a6a6a6;
            --outline-strong: #2b2b2b;
            --error: #f87171;
            background: #000000;
            color: var(--text-primary);
        }
        body {
            margin: 0;
            min-height: 100vh;
            display: flex;
            align-items: center;
            justify-content: center;
            background: #000000;
        }
        main {
            max-width: 32rem;
            padding: 2rem 1.5rem;
            text-align: center;
        }
        .error-title {
            color: var(--error);
            font-size: 1.25rem;
        }
        .error-message {
            color: var(--error);
            margin: 1rem 0 1.5rem;
        }
        .muted {
            color: var(--text-muted);
        }
        input {
            width: 100%;
            padding: 0.6rem 0.8rem;
            margin: 0.5rem 0 1rem;
            border-radius: 0.5rem;
            border: 1px solid var(--outline-strong);
            background: var(--surface);
            color: inherit;
        }
        .button {
            display: inline-block;
            padding: 0.5rem 1.25rem;
            border-radius: 999px;
            border: 1px solid var(--outline-strong);
            background: var(--surface);
            color: inherit;
            text-decoration: none;
            cursor: pointer;
        }
    </style>
    """
)


CONFIG_TEMPLATE = dedent(
    """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>__APP_NAME__ · Configure</title>
    __STYLE__
</head>
<body>
    <main>
        <h1>Configure __APP_NAME__</h1>
        <p id="simkl-status" class="muted">__STATUS_TEXT__</p>
        <form id="simkl-login">
            <label for="simkl-client-id">SIMKL Client ID <span class="muted">(optional)</span></label>
            <input id="simkl-client-id" name="client_id" autocomplete="off" />
            <button class="button" type="submit">Sign in with SIMKL</button>
        </form>
        <p id="simkl-error" class="error-message" hidden></p>
    </main>
    <script>
        (function() {
            const defaults = JSON.parse('__DEFAULTS_JSON__');
            const form = document.getElementById('simkl-login');
            const errorBox = document.getElementById('simkl-error');
            form.addEventListener('submit', async (event) => {
                event.preventDefault();
                errorBox.hidden = true;
                const clientId = document.getElementById('simkl-client-id').value.trim();
                try {
                    const response = await fetch(defaults.loginEndpoint, {
                        method: 'POST',
                        headers: { 'Content-Type': 'application/json' },
                        body: JSON.stringify(clientId ? { client_id: clientId } : {}),
                    });
                    const payload = await response.json();
                    if (!response.ok) {
                        throw new Error(payload.detail?.description || payload.detail || 'Sign in failed');
                    }
                    window.location.href = payload.url;
                } catch (err) {
                    errorBox.textContent = String(err.message || err);
                    errorBox.hidden = false;
                }
            });
        })();
    </script>
</body>
</html>
"""
)


CALLBACK_ERROR_TEMPLATE = dedent(
    """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>SIMKL Sign In</title>
    __STYLE__
</head>
<body>
    <main>
        <div class="error-title">Error</div>
        <div class="error-message">__MESSAGE__</div>
        <a class="button" href="__CONFIGURE_PATH__">Go back to Configure</a>
    </main>
</body>
</html>
"""
)


def render_config_page(
    settings: Settings,
    *,
    connected: bool,
    login_endpoint: str,
) -> str:
    if connected:
        status_text = "Connected to SIMKL."
    elif settings.simkl_client_id:
        status_text = "Not connected. Sign in to link your SIMKL account."
    else:
        status_text = "Not connected. A SIMKL Client ID is required to sign in."

    defaults = {
        "appName": settings.app_name,
        "connected": connected,
        "loginEndpoint": login_endpoint,
        "serverClientId": bool(settings.simkl_client_id),
    }
    defaults_json = json.dumps(defaults).replace("</", "<\\/")

    html = CONFIG_TEMPLATE
    replacements = {
        "__STYLE__": PAGE_STYLE,
        "__APP_NAME__": escape(settings.app_name),
        "__STATUS_TEXT__": status_text,
        "__DEFAULTS_JSON__": defaults_json,
    }
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, value)
    return html


def render_callback_error(message: str, *, configure_url: str) -> str:
    html = CALLBACK_ERROR_TEMPLATE
    replacements = {
        "__STYLE__": PAGE_STYLE,
        "__CONFIGURE_PATH__": escape(configure_url, quote=True),
        "__MESSAGE__": escape(message),
    }
    for placeholder, value in replacements.items():
        html = html.replace(placeholder, value)
    return html
