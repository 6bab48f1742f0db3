"""Exception hierarchy for the Lightning Out auth server."""

from __future__ import annotations

from typing import Any


class LightningOutError(Exception):
    """Base class for all application errors."""


class SalesforceAPIError(LightningOutError):
    """A call to a Salesforce endpoint failed.

    Attributes:
        status_code: HTTP status returned by Salesforce (None if unreachable)
        error: OAuth error code from the response body, if any
        payload: Decoded response body, if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error: str | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error = error
        self.payload = payload


class TokenRequestError(SalesforceAPIError):
    """The OAuth token endpoint rejected the request or could not be reached."""


class AuthenticationError(LightningOutError):
    """A grant flow could not produce an access token."""

    def __init__(self, message: str, hints: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hints = hints or []


class ServerAuthenticationError(AuthenticationError):
    """Every configured server-to-server flow failed.

    ``details`` maps each attempted flow to its error message and is
    returned to the caller together with ``solutions``.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any],
        solutions: list[str],
        hints: list[str] | None = None,
    ) -> None:
        super().__init__(message, hints=hints)
        self.details = details
        self.solutions = solutions
