"""Server-side cookie sessions for Starlette.

The browser only holds a random session id inside an HS256 JWT signed
with SESSION_SECRET. Session data lives in the key-value store created by
``storage.create_storage`` and expires with the cookie.

Usage:
    app = Starlette(
        middleware=[Middleware(SessionMiddleware, storage=storage, secret_key="...")],
    )

    async def handler(request):
        session = get_session(request)
        session["codeVerifier"] = verifier
"""

from __future__ import annotations

import copy
import secrets
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

import jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .logging_config import get_logger

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue
    from starlette.types import ASGIApp

logger = get_logger("sessions")

SESSION_COLLECTION = "sessions"
SESSION_TOKEN_ALGORITHM = "HS256"
DEFAULT_MAX_AGE = 24 * 60 * 60


def sign_session_id(secret_key: str, session_id: str, max_age: int = DEFAULT_MAX_AGE) -> str:
    """Return the cookie value: an HS256 JWT carrying the session id.

    The token expires together with the cookie and the stored record.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sid": session_id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=max_age)).timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=SESSION_TOKEN_ALGORITHM)


def unsign_session_id(secret_key: str, cookie_value: str | None) -> str | None:
    """Return the session id from a cookie value.

    Returns None for a missing, tampered, expired or malformed token.
    """
    if not cookie_value:
        return None
    try:
        payload = jwt.decode(cookie_value, secret_key, algorithms=[SESSION_TOKEN_ALGORITHM])
    except jwt.InvalidTokenError as e:
        logger.debug("Rejected session token: %s", e)
        return None

    session_id = payload.get("sid")
    if not isinstance(session_id, str) or not session_id:
        return None
    return session_id


class SessionMiddleware(BaseHTTPMiddleware):
    """Attach a server-side session dict to ``request.state.session``.

    A session is written to storage only when a handler changed it, so
    anonymous requests never create records or cookies. Clearing a
    session removes both the record and the cookie.
    """

    def __init__(
        self,
        app: "ASGIApp",
        storage: "AsyncKeyValue",
        secret_key: str,
        cookie_name: str = "lightning_out.sid",
        max_age: int = DEFAULT_MAX_AGE,
        https_only: bool = False,
    ) -> None:
        super().__init__(app)
        self.storage = storage
        self.secret_key = secret_key
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.https_only = https_only

    async def _load(self, request: Request) -> tuple[str | None, dict[str, Any]]:
        cookie_value = request.cookies.get(self.cookie_name)
        session_id = unsign_session_id(self.secret_key, cookie_value)
        if session_id is None:
            if cookie_value:
                logger.warning("Ignoring invalid or expired session cookie")
            return None, {}

        data = await self.storage.get(session_id, collection=SESSION_COLLECTION)
        if data is None:
            logger.debug("Session not found or expired")
            return None, {}
        return session_id, dict(data)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        session_id, data = await self._load(request)
        snapshot = copy.deepcopy(data)

        request.state.session = data
        request.state.session_loaded = session_id is not None

        response = await call_next(request)

        if data == snapshot:
            return response

        if data:
            if session_id is None:
                session_id = secrets.token_urlsafe(32)
                logger.debug("Created new session")
            await self.storage.put(
                session_id,
                data,
                collection=SESSION_COLLECTION,
                ttl=self.max_age,
            )
            response.set_cookie(
                self.cookie_name,
                sign_session_id(self.secret_key, session_id, self.max_age),
                max_age=self.max_age,
                httponly=True,
                secure=self.https_only,
                samesite="lax",
            )
        elif session_id is not None:
            await self.storage.delete(session_id, collection=SESSION_COLLECTION)
            response.delete_cookie(self.cookie_name)
            logger.debug("Destroyed empty session")

        return response


def get_session(request: Request) -> dict[str, Any]:
    """Return the session attached by SessionMiddleware.

    Raises:
        RuntimeError: If SessionMiddleware is not installed
    """
    session = getattr(request.state, "session", None)
    if session is None:
        raise RuntimeError(
            "Session not found in request state. Did you forget to add SessionMiddleware?"
        )
    return session
