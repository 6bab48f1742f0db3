"""HTTP routes for the Lightning Out auth server."""

from .api import get_api_routes
from .auth import get_auth_routes

__all__ = [
    "get_api_routes",
    "get_auth_routes",
]
