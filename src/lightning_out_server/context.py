"""Module-level context management for application-wide singletons.

The server authenticator owns the process-lifetime token cache, so every
request handler must see the same instance. The application lifespan
installs the context on startup and clears it on shutdown.

Usage:
    # In app.py lifespan:
    from .context import AppContext, set_app_context
    set_app_context(AppContext(config=config, authenticator=authenticator))

    # In route handlers:
    from .context import get_app_context
    ctx = get_app_context()
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import msgspec

if TYPE_CHECKING:
    from .config import ServerConfig
    from .oauth.server_auth import ServerAuthenticator


class AppContext(msgspec.Struct, kw_only=True):
    """Application context shared across requests."""

    config: "ServerConfig"
    authenticator: "ServerAuthenticator"


_app_context: AppContext | None = None


def set_app_context(ctx: AppContext | None) -> None:
    """Install (or clear, with None) the application context."""
    global _app_context
    _app_context = ctx


def get_app_context() -> AppContext:
    """Get the application context.

    Raises:
        RuntimeError: If the application has not started
    """
    if _app_context is None:
        raise RuntimeError("Application context not initialized")
    return _app_context
