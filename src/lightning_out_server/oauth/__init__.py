"""OAuth support for the Lightning Out auth server.

Three ways of obtaining a Salesforce access token:

- **Web Server Flow** (browser): authorization code + PKCE, with a
  client_secret fallback when PKCE is disabled for troubleshooting.
- **Client Credentials** (server): Connected App run-as user, cached.
- **Username/Password** (server): integration user, fallback or forced.

Components:
    - SalesforceOAuthClient: token and userinfo endpoint client
    - ServerAuthenticator: server-to-server flows with caching and fallback
    - build_authorization_url: login redirect for the web server flow
    - PKCE utilities: generate_pkce_pair, generate_code_verifier, compute_challenge
"""

from .client import SalesforceOAuthClient, TokenResponse, UserInfo
from .pkce import compute_challenge, generate_code_verifier, generate_pkce_pair
from .server_auth import ServerAuthenticator, ServerAuthResult
from .web_flow import build_authorization_url

__all__ = [
    # Endpoint client
    "SalesforceOAuthClient",
    "TokenResponse",
    "UserInfo",
    # Server-to-server
    "ServerAuthenticator",
    "ServerAuthResult",
    # Web server flow
    "build_authorization_url",
    # PKCE utilities
    "generate_pkce_pair",
    "generate_code_verifier",
    "compute_challenge",
]
