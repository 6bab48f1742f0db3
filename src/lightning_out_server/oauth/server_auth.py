"""Server-to-server authentication against a Salesforce org.

Two grant flows are available when no user has logged in through the
browser:

- **Client Credentials**: the Connected App authenticates as its run-as
  user. The token is cached for the lifetime of the process.
- **Username/Password**: a named integration user, used as a fallback or
  exclusively when ``SALESFORCE_AUTH_FLOW=password``.
"""

from __future__ import annotations

import msgspec

from ..config import SalesforceConfig
from ..errors import AuthenticationError, ServerAuthenticationError, TokenRequestError
from ..logging_config import get_logger
from .client import SalesforceOAuthClient, TokenResponse, token_endpoint

logger = get_logger("oauth.server_auth")

SANDBOX_LOGIN_URL = "https://test.salesforce.com"

PASSWORD_FLOW_HINTS = [
    "Check that OAuth settings are enabled on the Connected App and the required scopes are added",
    "Append the user's security token to the password unless the login IP range is relaxed",
    "Use the test.salesforce.com endpoint for sandboxes",
    "Check that the Consumer Key/Secret are correct and have not been regenerated",
]

PASSWORD_ONLY_SOLUTIONS = [
    "Set SALESFORCE_USERNAME and SALESFORCE_PASSWORD (and SALESFORCE_SECURITY_TOKEN if needed)",
    "For sandboxes set SALESFORCE_IS_SANDBOX=true or SALESFORCE_LOGIN_URL=https://test.salesforce.com",
    "Re-check the Connected App OAuth settings and scopes",
]

FALLBACK_SOLUTIONS = [
    "Enable Client Credentials Flow in your Connected App",
    "Set SALESFORCE_USERNAME and SALESFORCE_PASSWORD environment variables (+ SECURITY_TOKEN if needed)",
    "Use https://test.salesforce.com for sandboxes or set SALESFORCE_IS_SANDBOX=true",
]


class ServerAuthResult(msgspec.Struct, kw_only=True):
    """Token obtained by a server-to-server flow."""

    access_token: str
    instance_url: str
    auth_method: str
    token_type: str = "Bearer"
    issued_at: str | None = None
    signature: str | None = None
    refresh_token: str | None = None


class ServerAuthenticator:
    """Obtains org-level tokens without a browser login.

    Flow selection for ``authenticate()``:
        SALESFORCE_AUTH_FLOW=password:
            Username/Password only.
        otherwise:
            Client Credentials, then Username/Password on failure.

    Example:
        >>> authenticator = ServerAuthenticator(config.salesforce)
        >>> result, auth_type = await authenticator.authenticate()
    """

    def __init__(
        self,
        config: SalesforceConfig,
        oauth_client: SalesforceOAuthClient | None = None,
    ) -> None:
        self.config = config
        self._oauth_client = oauth_client or SalesforceOAuthClient(
            client_id=config.client_id,
            client_secret=config.client_secret,
        )
        self._token_cache: TokenResponse | None = None

    @property
    def oauth_client(self) -> SalesforceOAuthClient:
        return self._oauth_client

    @property
    def cached_token(self) -> TokenResponse | None:
        return self._token_cache

    @property
    def token_host(self) -> str:
        """Host used for the cached client-credentials token request.

        SALESFORCE_HOST wins; otherwise the org's My Domain, unless the
        domain is the generic login host.
        """
        if self.config.host:
            return self.config.host
        domain = self.config.domain
        if domain and "login.salesforce.com" not in domain:
            return domain
        return "login.salesforce.com"

    def _cached_grant_form(self) -> dict[str, str]:
        if self.config.force_password:
            return {
                "grant_type": "password",
                "client_id": self.config.client_id,
                "client_secret": self.config.client_secret,
                "username": self.config.username or "",
                "password": f"{self.config.password or ''}{self.config.security_token}",
            }
        return {
            "grant_type": "client_credentials",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
        }

    async def get_access_token(self) -> TokenResponse:
        """Return the cached server token, fetching it on first use.

        Only successful responses are cached.

        Raises:
            TokenRequestError: If Salesforce does not issue a token
        """
        if self._token_cache is not None:
            return self._token_cache

        token_url = f"https://{self.token_host}/services/oauth2/token"
        client_id = self.config.client_id
        logger.info(
            "Attempting Salesforce authentication: token_url=%s, client_id=%s",
            token_url,
            client_id[:10] + "..." if client_id else "NOT_SET",
        )

        try:
            token = await self._oauth_client.request_token(token_url, self._cached_grant_form())
        except TokenRequestError as e:
            logger.error("Salesforce authentication failed: %s", e.message)
            raise

        self._token_cache = token
        logger.info("Salesforce authentication succeeded: instance_url=%s", token.instance_url)
        return token

    async def authenticate_server_to_server(self) -> ServerAuthResult:
        """Authenticate with the (cached) Client Credentials flow.

        Raises:
            AuthenticationError: If no token can be obtained
        """
        try:
            token = await self.get_access_token()
        except TokenRequestError as e:
            raise AuthenticationError(e.message) from e

        logger.info("Server-to-server authentication successful")
        return ServerAuthResult(
            access_token=token.access_token,
            instance_url=token.instance_url,
            token_type=token.token_type or "Bearer",
            issued_at=token.issued_at,
            signature=token.signature,
            auth_method="client_credentials",
        )

    def password_login_url(self) -> str:
        """Login URL for the password flow: test.salesforce.com for sandboxes."""
        username = (self.config.username or "").lower()
        if self.config.is_sandbox or ".sandbox" in username:
            return SANDBOX_LOGIN_URL
        return self.config.login_url

    async def authenticate_username_password(self) -> ServerAuthResult:
        """Authenticate with the Username/Password flow. Never cached.

        Raises:
            AuthenticationError: With troubleshooting hints on any failure
        """
        username = self.config.username
        password = self.config.password
        if not username or not password:
            raise AuthenticationError(
                "Username/Password authentication requires SALESFORCE_USERNAME "
                "and SALESFORCE_PASSWORD environment variables",
                hints=PASSWORD_FLOW_HINTS,
            )

        base_url = self.password_login_url()
        logger.info(
            "Attempting username/password authentication: auth_host=%s, sandbox=%s",
            base_url,
            base_url == SANDBOX_LOGIN_URL,
        )

        form = {
            "grant_type": "password",
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "username": username,
            "password": password + self.config.security_token,
        }

        try:
            token = await self._oauth_client.request_token(token_endpoint(base_url), form)
        except TokenRequestError as e:
            logger.error("Username/password authentication failed: %s", e.message)
            raise AuthenticationError(e.message, hints=PASSWORD_FLOW_HINTS) from e

        logger.info("Username/password authentication successful")
        return ServerAuthResult(
            access_token=token.access_token,
            instance_url=token.instance_url,
            refresh_token=token.refresh_token,
            token_type=token.token_type or "Bearer",
            issued_at=token.issued_at,
            signature=token.signature,
            auth_method="password",
        )

    async def authenticate(self) -> tuple[ServerAuthResult, str]:
        """Run the configured server flows in order.

        Returns:
            (result, auth_type) where auth_type is "client_credentials" or "password"

        Raises:
            ServerAuthenticationError: If every attempted flow failed
        """
        if self.config.force_password:
            try:
                result = await self.authenticate_username_password()
            except AuthenticationError as e:
                raise ServerAuthenticationError(
                    "Authentication failed",
                    details={"usernamePassword": e.message, "hints": e.hints},
                    solutions=PASSWORD_ONLY_SOLUTIONS,
                    hints=e.hints,
                ) from e
            return result, "password"

        try:
            return await self.authenticate_server_to_server(), "client_credentials"
        except AuthenticationError as client_cred_error:
            logger.info("Client Credentials failed, trying username/password fallback")

            try:
                result = await self.authenticate_username_password()
            except AuthenticationError as password_error:
                logger.error(
                    "All authentication methods failed: client_credentials=%s, password=%s",
                    client_cred_error.message,
                    password_error.message,
                )
                raise ServerAuthenticationError(
                    "Authentication failed",
                    details={
                        "clientCredentials": client_cred_error.message,
                        "usernamePassword": password_error.message,
                        "hints": password_error.hints,
                    },
                    solutions=FALLBACK_SOLUTIONS,
                    hints=password_error.hints,
                ) from password_error

        return result, "password"

    async def close(self) -> None:
        """Clean up resources."""
        await self._oauth_client.close()
