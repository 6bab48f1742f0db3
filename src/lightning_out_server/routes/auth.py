"""Authentication routes.

- ``GET /auth``: start the web server flow (PKCE unless ``?pkce=false``)
- ``GET /callback`` (and ``/auth/callback``): exchange the code, store the session
- ``POST /auth/server``: server-to-server login with flow fallback
"""

from __future__ import annotations

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response
from starlette.routing import Route

from ..context import get_app_context
from ..errors import SalesforceAPIError, ServerAuthenticationError, TokenRequestError
from ..lightning import (
    SessionAuth,
    build_frontdoor_url,
    build_lightning_out_url,
    dump_session_auth,
)
from ..logging_config import get_logger
from ..oauth.pkce import generate_pkce_pair
from ..oauth.web_flow import build_authorization_url
from ..responses import JSONResponse, redirect_home
from ..sessions import get_session

logger = get_logger("routes.auth")


async def start_login(request: Request) -> Response:
    """Redirect the browser to the Salesforce login page."""
    ctx = get_app_context()
    session = get_session(request)
    use_pkce = request.query_params.get("pkce") != "false"

    if use_pkce:
        code_verifier, code_challenge = generate_pkce_pair()
        session["codeVerifier"] = code_verifier
        session["usePKCE"] = True

        auth_url = build_authorization_url(ctx.config.salesforce, code_challenge)
        logger.info(
            "Redirecting to Salesforce OAuth with PKCE: verifier=%s..., challenge=%s...",
            code_verifier[:10],
            code_challenge[:10],
        )
    else:
        session.pop("codeVerifier", None)
        session["usePKCE"] = False

        auth_url = build_authorization_url(ctx.config.salesforce)
        logger.info("Redirecting to Salesforce OAuth WITHOUT PKCE (fallback mode)")

    return RedirectResponse(auth_url, status_code=302)


async def oauth_callback(request: Request) -> Response:
    """Handle the Salesforce redirect after login."""
    ctx = get_app_context()
    salesforce = ctx.config.salesforce
    lightning_out = ctx.config.lightning_out
    session = get_session(request)

    error = request.query_params.get("error")
    if error:
        error_description = request.query_params.get("error_description")
        logger.error(
            "OAuth error from Salesforce: error=%s, description=%s", error, error_description
        )
        return redirect_home(
            auth_error=error,
            error_description=error_description or "Unknown OAuth error",
        )

    code = request.query_params.get("code")
    if not code:
        logger.error("No authorization code in callback")
        return redirect_home(
            auth_error="authorization_code_missing",
            error_description="Authorization code not provided in callback URL",
        )

    logger.info("Authorization code received: %s...", code[:20])

    code_verifier = None
    if session.get("usePKCE") is not False:
        code_verifier = session.get("codeVerifier")
        if not code_verifier:
            logger.error("Code verifier not found in session")
            return redirect_home(
                auth_error="session_error",
                error_description="Code verifier not found in session. "
                "Please try authentication again.",
            )

    try:
        token = await ctx.authenticator.oauth_client.exchange_code(
            salesforce.login_url,
            code,
            salesforce.redirect_uri,
            code_verifier=code_verifier,
        )
    except TokenRequestError as e:
        if e.error:
            return JSONResponse({"error": e.message}, status_code=400)
        return JSONResponse(
            {"error": "Authentication failed", "details": e.payload or e.message},
            status_code=500,
        )

    auth = SessionAuth(
        access_token=token.access_token,
        refresh_token=token.refresh_token,
        instance_url=token.instance_url,
        id=token.id,
        issued_at=token.issued_at,
        signature=token.signature,
        frontdoor_url=build_frontdoor_url(
            token.instance_url, token.access_token, lightning_out.component_name
        ),
        lightning_out_url=build_lightning_out_url(token.instance_url, lightning_out.app_id),
        session_id=token.access_token,
        server_url=token.instance_url,
    )

    try:
        user_info = await ctx.authenticator.oauth_client.fetch_user_info(
            token.instance_url, token.access_token
        )
    except SalesforceAPIError as e:
        logger.warning("Failed to fetch user info: %s", e.message)
    else:
        auth.user_id = user_info.user_id
        auth.org_id = user_info.organization_id
        auth.user_name = user_info.name
        auth.user_email = user_info.email
        logger.info(
            "User info fetched: user_id=%s, org_id=%s", user_info.user_id, user_info.organization_id
        )

    session["salesforceAuth"] = dump_session_auth(auth)
    session.pop("codeVerifier", None)

    logger.info("Authentication successful: instance_url=%s", token.instance_url)
    return redirect_home(token=token.access_token, instance=token.instance_url)


async def server_login(request: Request) -> Response:
    """Authenticate the server itself and store the result in the session."""
    ctx = get_app_context()

    try:
        result, auth_type = await ctx.authenticator.authenticate()
    except ServerAuthenticationError as e:
        return JSONResponse(
            {
                "success": False,
                "error": e.message,
                "details": e.details,
                "solutions": e.solutions,
            },
            status_code=401,
        )
    except Exception as e:
        logger.error("Unexpected server authentication error: %s", e, exc_info=e)
        return JSONResponse(
            {
                "success": False,
                "error": "Unexpected server authentication error",
                "details": str(e),
            },
            status_code=500,
        )

    frontdoor_url = build_frontdoor_url(
        result.instance_url, result.access_token, ctx.config.lightning_out.component_name
    )

    session = get_session(request)
    session["salesforceAuth"] = dump_session_auth(
        SessionAuth(
            access_token=result.access_token,
            refresh_token=result.refresh_token,
            instance_url=result.instance_url,
            token_type=result.token_type,
            issued_at=result.issued_at,
            signature=result.signature,
            frontdoor_url=frontdoor_url,
            session_id=result.access_token,
            server_url=result.instance_url,
            server_auth=True,
            auth_method=result.auth_method,
            user_name=f"Server Authentication ({auth_type})",
        )
    )
    logger.info("Server authentication stored in session: auth_type=%s", auth_type)

    return JSONResponse(
        {
            "success": True,
            "message": f"Server authentication successful using {auth_type}",
            "authType": auth_type,
            "instanceUrl": result.instance_url,
            "frontdoorUrl": frontdoor_url,
        }
    )


def get_auth_routes() -> list[Route]:
    """Routes for the browser and server login flows."""
    return [
        Route("/auth", start_login, methods=["GET"]),
        Route("/callback", oauth_callback, methods=["GET"]),
        Route("/auth/callback", oauth_callback, methods=["GET"]),
        Route("/auth/server", server_login, methods=["POST"]),
    ]
