"""Starlette application setup and lifecycle management."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.routing import BaseRoute, Mount
from starlette.staticfiles import StaticFiles

from .config import ServerConfig, get_config
from .context import AppContext, set_app_context
from .logging_config import get_logger
from .oauth.server_auth import ServerAuthenticator
from .responses import JSONResponse, JSONErrorMiddleware, server_error_response
from .routes import get_api_routes, get_auth_routes
from .security import CORS_ORIGIN_REGEX, SecurityHeadersMiddleware
from .sessions import SessionMiddleware
from .storage import create_storage

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

logger = get_logger("app")


def _build_routes(config: ServerConfig) -> list[BaseRoute]:
    routes: list[BaseRoute] = [*get_api_routes(), *get_auth_routes()]

    # Static files go last so API and auth routes take precedence
    if os.path.isdir(config.static_dir):
        routes.append(Mount("/", app=StaticFiles(directory=config.static_dir, html=True)))
        logger.debug("Serving static files from %s", config.static_dir)
    else:
        logger.warning("Static directory not found, demo page disabled: %s", config.static_dir)

    return routes


def create_app(
    config: ServerConfig | None = None,
    storage: "AsyncKeyValue | None" = None,
    authenticator: ServerAuthenticator | None = None,
) -> Starlette:
    """Create and configure the Starlette application.

    Args:
        config: Server configuration (default: loaded from environment)
        storage: Session storage backend (default: built from ``config.session``)
        authenticator: Server-to-server authenticator (default: built from config)

    Returns:
        Configured Starlette application
    """
    config = config or get_config()
    storage = storage if storage is not None else create_storage(config.session)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("Starting Lightning Out server: environment=%s", config.environment)
        server_authenticator = authenticator or ServerAuthenticator(config.salesforce)
        set_app_context(AppContext(config=config, authenticator=server_authenticator))

        try:
            yield
        finally:
            logger.info("Shutting down Lightning Out server")
            await server_authenticator.close()
            set_app_context(None)
            logger.info("Server shutdown complete")

    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(
                {
                    "success": False,
                    "error": "Not found",
                    "message": f"Route {request.url.path} not found",
                },
                status_code=404,
            )
        return JSONResponse(
            {"success": False, "error": exc.detail},
            status_code=exc.status_code,
            headers=exc.headers,
        )

    async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
        # Only reached for failures inside the middleware stack itself
        return server_error_response(request, exc, config.is_development)

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origin_regex=CORS_ORIGIN_REGEX,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        ),
        Middleware(SecurityHeadersMiddleware),
        Middleware(
            SessionMiddleware,
            storage=storage,
            secret_key=config.session.secret,
            cookie_name=config.session.cookie_name,
            max_age=config.session.max_age,
            https_only=config.is_production,
        ),
        Middleware(JSONErrorMiddleware, expose_details=config.is_development),
    ]

    return Starlette(
        debug=False,
        routes=_build_routes(config),
        middleware=middleware,
        exception_handlers={
            HTTPException: http_exception_handler,
            Exception: server_error_handler,
        },
        lifespan=lifespan,
    )
