"""HTTP client for the Salesforce OAuth endpoints.

Wraps the token endpoint (``/services/oauth2/token``) for every grant type
the server uses and the userinfo endpoint used to label a browser session
with the logged-in user and org.
"""

from __future__ import annotations

from typing import Any

import httpx
import msgspec

from ..errors import SalesforceAPIError, TokenRequestError
from ..logging_config import get_logger

logger = get_logger("oauth.client")

TOKEN_REQUEST_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
    "User-Agent": "LightningOut-Demo/2.0",
}


class TokenResponse(msgspec.Struct, kw_only=True):
    """Successful response from the Salesforce token endpoint."""

    access_token: str
    instance_url: str
    id: str | None = None
    token_type: str | None = None
    issued_at: str | None = None
    signature: str | None = None
    refresh_token: str | None = None
    scope: str | None = None


class UserInfo(msgspec.Struct, kw_only=True):
    """Subset of the OpenID Connect userinfo response."""

    user_id: str
    organization_id: str
    name: str | None = None
    email: str | None = None
    preferred_username: str | None = None


def token_endpoint(base_url: str) -> str:
    return f"{base_url.rstrip('/')}/services/oauth2/token"


def _error_message(payload: Any, status_code: int) -> str:
    if isinstance(payload, dict):
        message = payload.get("error_description") or payload.get("error")
        if message:
            return str(message)
    return f"HTTP {status_code}"


class SalesforceOAuthClient:
    """Async client for Salesforce token and userinfo requests."""

    def __init__(self, client_id: str, client_secret: str = "", timeout: float = 30.0) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self._timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._http_client is None:
            logger.debug("Creating async HTTP client for Salesforce OAuth")
            self._http_client = httpx.AsyncClient(timeout=self._timeout)
        return self._http_client

    async def request_token(self, token_url: str, form: dict[str, str]) -> TokenResponse:
        """POST a grant to the token endpoint.

        Args:
            token_url: Full token endpoint URL
            form: Grant parameters (grant_type and its fields)

        Returns:
            TokenResponse decoded from a successful response

        Raises:
            TokenRequestError: On transport errors, non-200 responses,
                200 responses carrying an ``error`` field, or bodies
                missing access_token/instance_url
        """
        grant_type = form.get("grant_type", "unknown")
        client = await self._get_client()

        try:
            response = await client.post(token_url, data=form, headers=TOKEN_REQUEST_HEADERS)
        except httpx.HTTPError as e:
            logger.error("Token request failed: grant_type=%s, error=%s", grant_type, e)
            raise TokenRequestError(f"Token request failed: {e}") from e

        try:
            payload = msgspec.json.decode(response.content)
        except msgspec.DecodeError:
            payload = None

        if response.status_code != 200 or (isinstance(payload, dict) and payload.get("error")):
            message = _error_message(payload, response.status_code)
            logger.error(
                "Token request rejected: grant_type=%s, status=%d, payload=%s",
                grant_type,
                response.status_code,
                payload,
            )
            raise TokenRequestError(
                message,
                status_code=response.status_code,
                error=payload.get("error") if isinstance(payload, dict) else None,
                payload=payload,
            )

        try:
            token = msgspec.convert(payload, TokenResponse)
        except msgspec.ValidationError as e:
            logger.error("Malformed token response: grant_type=%s, error=%s", grant_type, e)
            raise TokenRequestError(
                f"Malformed token response: {e}",
                status_code=response.status_code,
                payload=payload,
            ) from e

        logger.info("Token issued: grant_type=%s, instance_url=%s", grant_type, token.instance_url)
        return token

    async def exchange_code(
        self,
        login_url: str,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        PKCE exchanges send the code_verifier; the non-PKCE fallback
        authenticates with the client secret instead.
        """
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.client_id,
            "redirect_uri": redirect_uri,
        }
        if code_verifier:
            form["code_verifier"] = code_verifier
        else:
            form["client_secret"] = self.client_secret

        return await self.request_token(token_endpoint(login_url), form)

    async def fetch_user_info(self, instance_url: str, access_token: str) -> UserInfo:
        """Fetch the identity behind an access token.

        Raises:
            SalesforceAPIError: If the request fails or the response is invalid
        """
        client = await self._get_client()

        try:
            response = await client.get(
                f"{instance_url.rstrip('/')}/services/oauth2/userinfo",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            raise SalesforceAPIError(f"Userinfo request failed: {e}") from e

        if response.status_code != 200:
            raise SalesforceAPIError(
                f"Userinfo request failed: HTTP {response.status_code}",
                status_code=response.status_code,
                payload=response.text,
            )

        try:
            return msgspec.json.decode(response.content, type=UserInfo)
        except msgspec.DecodeError as e:
            raise SalesforceAPIError(
                f"Malformed userinfo response: {e}",
                status_code=response.status_code,
            ) from e

    async def close(self) -> None:
        """Close the async HTTP client."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None
