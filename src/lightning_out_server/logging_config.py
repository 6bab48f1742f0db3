"""Logging setup for the Lightning Out auth server.

All modules obtain their logger through ``get_logger`` so that output is
grouped under the ``lightning_out_server`` namespace and controlled by a
single ``LOG_LEVEL`` setting.
"""

from __future__ import annotations

import logging
import os
import sys

LOGGER_NAMESPACE = "lightning_out_server"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the package logger.

    Args:
        level: Log level name. Falls back to the LOG_LEVEL environment
            variable, then INFO.
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    root = logging.getLogger(LOGGER_NAMESPACE)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    # Re-running setup only adjusts the level
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the package namespace.

    Args:
        name: Dotted sub-name, e.g. ``"oauth.client"``

    Returns:
        logging.Logger for ``lightning_out_server.<name>``
    """
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")
