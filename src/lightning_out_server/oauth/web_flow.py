"""Authorization request construction for the Salesforce web server flow."""

from __future__ import annotations

from urllib.parse import quote, urlencode

from ..config import SalesforceConfig


def authorization_endpoint(login_url: str) -> str:
    return f"{login_url.rstrip('/')}/services/oauth2/authorize"


def build_authorization_url(
    config: SalesforceConfig,
    code_challenge: str | None = None,
) -> str:
    """Build the URL the browser is redirected to for login.

    Args:
        config: Salesforce configuration (client id, redirect URI, scopes)
        code_challenge: S256 PKCE challenge; omitted for the non-PKCE
            troubleshooting mode

    Returns:
        Authorization URL on the configured login host
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_uri,
        "scope": " ".join(config.scopes),
    }
    if code_challenge:
        params["code_challenge"] = code_challenge
        params["code_challenge_method"] = "S256"

    # quote keeps spaces as %20, which Salesforce expects in scope
    query = urlencode(params, quote_via=quote)
    return f"{authorization_endpoint(config.login_url)}?{query}"
