"""Lightning Out session records and embedding configuration.

A ``SessionAuth`` record is what the server remembers about an
authenticated Salesforce session. ``build_lightning_config`` turns it into
the payload the demo page hands to the Lightning Out script.
"""

from __future__ import annotations

import re
from urllib.parse import quote, urlencode

import msgspec

from .config import ServerConfig
from .logging_config import get_logger

logger = get_logger("lightning")

LOCAL_ORIGINS = ("http://localhost:3000", "http://localhost:8080", "http://127.0.0.1:3000")


class SessionAuth(msgspec.Struct, kw_only=True, rename="camel", omit_defaults=True):
    """Salesforce authentication stored in the session under ``salesforceAuth``."""

    access_token: str
    instance_url: str
    refresh_token: str | None = None
    id: str | None = None
    token_type: str | None = None
    issued_at: str | None = None
    signature: str | None = None
    frontdoor_url: str | None = None
    lightning_out_url: str | None = None
    # Lightning Out uses the access token as the session id (SID)
    session_id: str | None = None
    server_url: str | None = None
    server_auth: bool = False
    auth_method: str | None = None
    user_id: str | None = None
    org_id: str | None = None
    user_name: str | None = None
    user_email: str | None = None


class LightningConfig(msgspec.Struct, kw_only=True, rename="camel"):
    lightning_domain: str
    server_url: str
    session_id: str
    app_id: str
    component_name: str
    frontdoor_url: str
    lightning_out_url: str
    user_id: str
    org_id: str
    user_name: str
    allowed_origins: list[str]


class LightningConfigDebug(msgspec.Struct, kw_only=True, rename="camel"):
    # A stored session was found for the request cookie
    session_exists: bool
    auth_data_keys: list[str]
    has_access_token: bool
    server_auth_attempted: bool
    using_server_fallback: bool


class LightningConfigResponse(msgspec.Struct, kw_only=True, omit_defaults=True):
    success: bool
    authenticated: bool
    config: LightningConfig
    debug: LightningConfigDebug | None = None


def lightning_return_url(component_name: str) -> str:
    return f"/lightning/n/{component_name}"


def build_frontdoor_url(instance_url: str, access_token: str, component_name: str) -> str:
    """Build the frontdoor.jsp URL that turns an access token into a UI session."""
    query = urlencode(
        {"sid": access_token, "retURL": lightning_return_url(component_name)},
        quote_via=quote,
    )
    return f"{instance_url.rstrip('/')}/secur/frontdoor.jsp?{query}"


def build_lightning_out_url(instance_url: str, app_id: str) -> str:
    return f"{instance_url.rstrip('/')}/lightning/o/{app_id}"


def build_allowed_origins(instance_url: str | None, config: ServerConfig) -> list[str]:
    """Origins the page may exchange messages with.

    Empty entries are dropped and trailing slashes removed.
    """
    origins = [
        *LOCAL_ORIGINS,
        instance_url or f"https://{config.salesforce.domain}",
        *config.lightning_out.allowed_origins,
    ]
    return [origin.rstrip("/") for origin in origins if origin]


def build_lightning_config(auth: SessionAuth | None, config: ServerConfig) -> LightningConfig:
    """Build the Lightning Out embedding configuration.

    Without authentication every session-derived field is an empty string
    and the org domain falls back to SALESFORCE_DOMAIN.
    """
    instance_url = auth.instance_url if auth else None
    lightning_domain = (
        re.sub(r"^https?://", "", instance_url) if instance_url else config.salesforce.domain
    )

    return LightningConfig(
        lightning_domain=lightning_domain,
        server_url=instance_url or f"https://{config.salesforce.domain}",
        session_id=(auth.session_id if auth else None) or "",
        app_id=config.lightning_out.app_id,
        component_name=config.lightning_out.component_name,
        frontdoor_url=(auth.frontdoor_url if auth else None) or "",
        lightning_out_url=(auth.lightning_out_url if auth else None) or "",
        user_id=(auth.user_id if auth else None) or "",
        org_id=(auth.org_id if auth else None) or "",
        user_name=(auth.user_name if auth else None) or "",
        allowed_origins=build_allowed_origins(instance_url, config),
    )


def dump_session_auth(auth: SessionAuth) -> dict:
    """Serialize a SessionAuth for session storage (camelCase, unset fields omitted)."""
    return msgspec.to_builtins(auth)


def load_session_auth(data: object) -> SessionAuth | None:
    """Load a stored SessionAuth, or None if absent or unreadable."""
    if not data:
        return None
    try:
        return msgspec.convert(data, SessionAuth)
    except msgspec.ValidationError as e:
        logger.warning("Discarding unreadable session auth record: %s", e)
        return None
