"""JSON API routes for the demo page."""

from __future__ import annotations

import time
from datetime import datetime, timezone

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from ..context import get_app_context
from ..errors import AuthenticationError
from ..lightning import (
    LightningConfigDebug,
    LightningConfigResponse,
    SessionAuth,
    build_frontdoor_url,
    build_lightning_config,
    load_session_auth,
)
from ..logging_config import get_logger
from ..responses import JSONResponse
from ..sessions import get_session

logger = get_logger("routes.api")

_STARTED_AT = time.monotonic()


async def health(request: Request) -> Response:
    """Health check endpoint for monitoring and load balancers."""
    ctx = get_app_context()
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return JSONResponse(
        {
            "success": True,
            "status": "healthy",
            "timestamp": timestamp.replace("+00:00", "Z"),
            "uptime": round(time.monotonic() - _STARTED_AT, 3),
            "environment": ctx.config.environment,
        }
    )


async def _server_fallback_auth() -> SessionAuth | None:
    """Try a client-credentials login for a page without a session.

    The result is not stored in the session.
    """
    ctx = get_app_context()
    logger.info("No session auth found, attempting server authentication...")

    try:
        result = await ctx.authenticator.authenticate_server_to_server()
    except AuthenticationError as e:
        logger.warning("Server authentication fallback failed: %s", e.message)
        return None

    return SessionAuth(
        access_token=result.access_token,
        instance_url=result.instance_url,
        frontdoor_url=build_frontdoor_url(
            result.instance_url, result.access_token, ctx.config.lightning_out.component_name
        ),
        session_id=result.access_token,
        server_url=result.instance_url,
        server_auth=True,
        auth_method="server_fallback",
        user_name="Server Authentication (auto)",
    )


async def lightning_config(request: Request) -> Response:
    """Return the Lightning Out configuration for the current session."""
    ctx = get_app_context()
    session = get_session(request)

    stored = session.get("salesforceAuth")
    auth = load_session_auth(stored)

    effective_auth = auth
    server_auth_attempted = False
    if auth is None:
        effective_auth = await _server_fallback_auth()
        server_auth_attempted = True

    debug = None
    if ctx.config.is_development:
        debug = LightningConfigDebug(
            session_exists=bool(getattr(request.state, "session_loaded", False)),
            auth_data_keys=list(stored) if isinstance(stored, dict) else [],
            has_access_token=bool(auth and auth.access_token),
            server_auth_attempted=server_auth_attempted,
            using_server_fallback=auth is None and effective_auth is not None,
        )

    return JSONResponse(
        LightningConfigResponse(
            success=True,
            authenticated=effective_auth is not None,
            config=build_lightning_config(effective_auth, ctx.config),
            debug=debug,
        )
    )


def get_api_routes() -> list[Route]:
    """Health and Lightning Out configuration routes."""
    return [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/lightning-config", lightning_config, methods=["GET"]),
    ]
