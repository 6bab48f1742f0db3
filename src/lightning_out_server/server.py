"""Command-line entry point for the Lightning Out auth server."""

from __future__ import annotations

import asyncio
import os
from typing import Annotated

import typer
import uvicorn
from dotenv import load_dotenv

from .app import create_app
from .config import DEFAULT_SESSION_SECRET, ServerConfig, get_config
from .logging_config import get_logger, setup_logging

load_dotenv()
setup_logging()

logger = get_logger("server")


def _mask_secret(value: str | None) -> str:
    """Mask sensitive values for display."""
    if not value:
        return "(not set)"
    if len(value) <= 8:
        return "****"
    return value[:4] + "****" + value[-4:]


def _mask_client_id(value: str) -> str:
    return value[:10] + "..." if value else "(not set)"


def _print_config(config: ServerConfig) -> None:
    """Print server configuration at startup."""
    salesforce = config.salesforce
    lightning_out = config.lightning_out

    sections: list[tuple[str, list[tuple[str, str]]]] = [
        (
            "Server",
            [
                ("Host", config.host),
                ("Port", str(config.port)),
                ("Environment", config.environment),
                ("Static Dir", config.static_dir),
            ],
        ),
        (
            "Salesforce",
            [
                ("Client ID", _mask_client_id(salesforce.client_id)),
                (
                    "Client Secret",
                    f"set ({len(salesforce.client_secret)} chars)"
                    if salesforce.client_secret
                    else "(not set)",
                ),
                ("Redirect URI", salesforce.redirect_uri),
                ("Login URL", salesforce.login_url),
                ("Domain", salesforce.domain),
                ("Auth Flow", salesforce.auth_flow or "auto"),
                ("Username", salesforce.username or "(not set)"),
            ],
        ),
        (
            "Lightning Out",
            [
                ("App ID", lightning_out.app_id),
                ("Component", lightning_out.component_name),
                ("Allowed Origins", ", ".join(lightning_out.allowed_origins) or "(none)"),
            ],
        ),
        (
            "Session",
            [
                ("Cookie", config.session.cookie_name),
                ("Max Age", f"{config.session.max_age}s"),
                ("Secret", _mask_secret(config.session.secret)),
                ("Storage", config.session.storage_type),
                ("Encrypted", "yes" if config.session.encryption_key else "no"),
            ],
        ),
    ]

    logger.info("")
    logger.info("=" * 55)
    logger.info("  Lightning Out Server Configuration")
    logger.info("=" * 55)

    for section_name, items in sections:
        logger.info("")
        logger.info("  [%s]", section_name)
        for key, value in items:
            logger.info("    %-20s %s", key, value)

    logger.info("")
    logger.info("=" * 55)

    for warning in _config_warnings(config):
        logger.warning("  ! %s", warning)


def _config_warnings(config: ServerConfig) -> list[str]:
    warnings: list[str] = []

    if not config.salesforce.client_id:
        warnings.append("SALESFORCE_CLIENT_ID is required for every OAuth flow")
    if config.salesforce.force_password and not (
        config.salesforce.username and config.salesforce.password
    ):
        warnings.append(
            "SALESFORCE_AUTH_FLOW=password requires SALESFORCE_USERNAME and SALESFORCE_PASSWORD"
        )
    if config.is_production and config.session.secret == DEFAULT_SESSION_SECRET:
        warnings.append("SESSION_SECRET must be changed in production")

    return warnings


async def run_server_async(config: ServerConfig, log_level: str) -> None:
    """Run the server until it is stopped.

    uvicorn installs its own SIGINT/SIGTERM handlers and shuts the
    application lifespan down gracefully.
    """
    _print_config(config)

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(config),
            host=config.host,
            port=config.port,
            log_level=log_level.lower(),
        )
    )

    logger.info("Lightning Out server running on http://%s:%d", config.host, config.port)
    logger.info("Health check: http://%s:%d/api/health", config.host, config.port)

    try:
        await server.serve()
    except asyncio.CancelledError:
        logger.info("Server task cancelled")


app = typer.Typer(
    name="lightning-out-server",
    help="Lightning Out Server - OAuth backend for embedding Salesforce Lightning Web Components.",
    add_completion=False,
)


@app.command()
def main(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address (default: from HOST env or 127.0.0.1)"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Port to listen on (default: from PORT env or 3000)"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level (default: from LOG_LEVEL env or INFO)"),
    ] = None,
) -> None:
    """Run the Lightning Out auth server."""
    if log_level:
        setup_logging(log_level)

    config = get_config()
    if host:
        config.host = host
    if port:
        config.port = port

    try:
        asyncio.run(run_server_async(config, log_level or os.getenv("LOG_LEVEL", "info")))
    except KeyboardInterrupt:
        # Fallback for platforms where signal handlers don't work
        logger.info("Server stopped by user")


if __name__ == "__main__":
    app()
