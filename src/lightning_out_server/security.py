"""Browser security policy for pages that embed Lightning Out.

Lightning Out loads scripts, styles and frames from the Salesforce org, so
the Content-Security-Policy has to allow the Salesforce domains alongside
``'self'``. CORS is opened to local development hosts and Salesforce.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

if TYPE_CHECKING:
    from starlette.types import ASGIApp

SALESFORCE_SOURCES = ("*.force.com", "*.salesforce.com", "*.my.salesforce.com")

CSP_DIRECTIVES: dict[str, tuple[str, ...]] = {
    "default-src": ("'self'",),
    "script-src": ("'self'", "'unsafe-inline'", "'unsafe-eval'", *SALESFORCE_SOURCES),
    "style-src": ("'self'", "'unsafe-inline'", *SALESFORCE_SOURCES),
    "frame-src": ("'self'", *SALESFORCE_SOURCES),
    "connect-src": ("'self'", *SALESFORCE_SOURCES),
    "img-src": ("'self'", "data:", *SALESFORCE_SOURCES),
    "font-src": ("'self'", *SALESFORCE_SOURCES),
    "child-src": ("'self'", *SALESFORCE_SOURCES),
}

# Origin substrings accepted for credentialed CORS requests
CORS_ORIGIN_REGEX = r".*(localhost|127\.0\.0\.1|force\.com|salesforce\.com).*"


def build_content_security_policy(
    directives: dict[str, tuple[str, ...]] = CSP_DIRECTIVES,
) -> str:
    return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add CSP and related headers to every response."""

    def __init__(self, app: "ASGIApp", content_security_policy: str | None = None) -> None:
        super().__init__(app)
        self.headers = {
            "Content-Security-Policy": content_security_policy or build_content_security_policy(),
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "SAMEORIGIN",
            "Referrer-Policy": "no-referrer",
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers.setdefault(name, value)
        return response
