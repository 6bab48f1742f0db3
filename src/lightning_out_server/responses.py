"""Response helpers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import msgspec
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from .logging_config import get_logger

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = get_logger("responses")


class JSONResponse(Response):
    """JSON response encoded with msgspec, so Structs can be returned directly."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return msgspec.json.encode(content)


def redirect_home(**params: str) -> RedirectResponse:
    """302 redirect to the demo page with ``params`` in the query string."""
    url = f"/?{urlencode(params)}" if params else "/"
    return RedirectResponse(url, status_code=302)


def server_error_response(request: Request, exc: Exception, expose_details: bool) -> JSONResponse:
    """Log an unhandled error and describe it as a JSON 500.

    The exception text is only included when ``expose_details`` is set.
    """
    logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
    return JSONResponse(
        {
            "success": False,
            "error": "Internal server error",
            "message": str(exc) if expose_details else "Something went wrong",
        },
        status_code=500,
    )


class JSONErrorMiddleware(BaseHTTPMiddleware):
    """Turn exceptions raised by route handlers into JSON 500 responses.

    Installed innermost, so the error response still passes back through
    the CORS, security header and session middleware.
    """

    def __init__(self, app: "ASGIApp", expose_details: bool = False) -> None:
        super().__init__(app)
        self.expose_details = expose_details

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return server_error_response(request, exc, self.expose_details)
