"""PKCE (Proof Key for Code Exchange) utilities.

Implements the S256 method of RFC 7636 for the Salesforce web server flow.
The verifier stays in the server-side session; only the challenge is sent
to the authorization endpoint.
"""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_code_verifier() -> str:
    """Generate a random code_verifier.

    32 random bytes encode to 43 base64url characters, inside the 43-128
    range RFC 7636 allows.
    """
    return secrets.token_urlsafe(32)


def compute_challenge(code_verifier: str) -> str:
    """Compute the S256 code_challenge from a code_verifier.

    Args:
        code_verifier: The code verifier string

    Returns:
        str: BASE64URL(SHA256(code_verifier)) without padding
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE (code_verifier, code_challenge) pair.

    Example:
        >>> verifier, challenge = generate_pkce_pair()
        >>> compute_challenge(verifier) == challenge
        True
    """
    code_verifier = generate_code_verifier()
    return code_verifier, compute_challenge(code_verifier)
