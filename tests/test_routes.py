"""End-to-end tests for the authentication and API routes."""

from urllib.parse import parse_qs, urlparse

from pytest_httpx import HTTPXMock

from conftest import INSTANCE_URL, LOGIN_TOKEN_URL, ORG_TOKEN_URL, token_payload
from lightning_out_server.oauth.pkce import compute_challenge

USERINFO_URL = f"{INSTANCE_URL}/services/oauth2/userinfo"
USERINFO = {
    "user_id": "005xx0000000001",
    "organization_id": "00Dxx0000000001",
    "name": "Ada Lovelace",
    "email": "ada@example.com",
}


def _query(url: str) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


def _form(request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


def _login(client, httpx_mock: HTTPXMock, **token_extra):
    """Run /auth and /callback against mocked Salesforce endpoints."""
    client.get("/auth")
    httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload(**token_extra))
    httpx_mock.add_response(method="GET", url=USERINFO_URL, json=USERINFO)
    return client.get("/callback", params={"code": "aPrxCODE"})


class TestStartLogin:
    def test_redirects_with_pkce(self, client):
        response = client.get("/auth")

        assert response.status_code == 302
        location = response.headers["location"]
        assert location.startswith("https://login.salesforce.com/services/oauth2/authorize?")
        query = _query(location)
        assert query["response_type"] == "code"
        assert query["client_id"] == "test_client_id"
        assert query["redirect_uri"] == "http://localhost:3000/callback"
        assert query["scope"] == "web id"
        assert query["code_challenge_method"] == "S256"
        assert len(query["code_challenge"]) == 43
        assert "lightning_out.sid" in response.cookies

    def test_challenge_matches_exchanged_verifier(self, client, httpx_mock: HTTPXMock):
        challenge = _query(client.get("/auth").headers["location"])["code_challenge"]
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload())
        httpx_mock.add_response(method="GET", url=USERINFO_URL, json=USERINFO)

        client.get("/callback", params={"code": "aPrxCODE"})

        form = _form(httpx_mock.get_request(method="POST"))
        assert compute_challenge(form["code_verifier"]) == challenge
        assert "client_secret" not in form

    def test_without_pkce(self, client):
        response = client.get("/auth", params={"pkce": "false"})

        query = _query(response.headers["location"])
        assert "code_challenge" not in query
        assert "code_challenge_method" not in query


class TestCallback:
    def test_success(self, client, httpx_mock: HTTPXMock):
        response = _login(client, httpx_mock)

        assert response.status_code == 302
        assert _query(response.headers["location"]) == {
            "token": "00Dxx!AQ0token",
            "instance": INSTANCE_URL,
        }

        config = client.get("/api/lightning-config").json()
        assert config["authenticated"] is True
        assert config["config"]["sessionId"] == "00Dxx!AQ0token"
        assert config["config"]["userId"] == "005xx0000000001"
        assert config["config"]["orgId"] == "00Dxx0000000001"
        assert config["config"]["userName"] == "Ada Lovelace"
        assert config["config"]["lightningOutUrl"] == f"{INSTANCE_URL}/lightning/o/1UsTEST0000000001"
        assert config["config"]["frontdoorUrl"].startswith(f"{INSTANCE_URL}/secur/frontdoor.jsp?sid=")
        assert config["debug"]["sessionExists"] is True
        assert config["debug"]["hasAccessToken"] is True
        assert config["debug"]["serverAuthAttempted"] is False

    def test_auth_callback_alias(self, client, httpx_mock: HTTPXMock):
        client.get("/auth")
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload())
        httpx_mock.add_response(method="GET", url=USERINFO_URL, json=USERINFO)

        response = client.get("/auth/callback", params={"code": "aPrxCODE"})

        assert response.status_code == 302
        assert _query(response.headers["location"])["token"] == "00Dxx!AQ0token"

    def test_verifier_is_single_use(self, client, httpx_mock: HTTPXMock):
        _login(client, httpx_mock)

        response = client.get("/callback", params={"code": "replayed"})

        assert _query(response.headers["location"])["auth_error"] == "session_error"

    def test_oauth_error(self, client):
        response = client.get(
            "/callback", params={"error": "access_denied", "error_description": "end-user denied"}
        )

        assert response.status_code == 302
        assert _query(response.headers["location"]) == {
            "auth_error": "access_denied",
            "error_description": "end-user denied",
        }

    def test_oauth_error_without_description(self, client):
        response = client.get("/callback", params={"error": "access_denied"})

        assert _query(response.headers["location"])["error_description"] == "Unknown OAuth error"

    def test_missing_code(self, client):
        response = client.get("/callback")

        assert _query(response.headers["location"])["auth_error"] == "authorization_code_missing"

    def test_missing_verifier(self, client):
        response = client.get("/callback", params={"code": "aPrxCODE"})

        assert response.status_code == 302
        assert _query(response.headers["location"])["auth_error"] == "session_error"

    def test_without_pkce_sends_client_secret(self, client, httpx_mock: HTTPXMock):
        client.get("/auth", params={"pkce": "false"})
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload())
        httpx_mock.add_response(method="GET", url=USERINFO_URL, json=USERINFO)

        response = client.get("/callback", params={"code": "aPrxCODE"})

        assert response.status_code == 302
        form = _form(httpx_mock.get_request(method="POST"))
        assert form["client_secret"] == "test_client_secret"
        assert "code_verifier" not in form

    def test_rejected_code(self, client, httpx_mock: HTTPXMock):
        client.get("/auth")
        httpx_mock.add_response(
            method="POST",
            url=LOGIN_TOKEN_URL,
            status_code=400,
            json={"error": "invalid_grant", "error_description": "expired authorization code"},
        )

        response = client.get("/callback", params={"code": "stale"})

        assert response.status_code == 400
        assert response.json() == {"error": "expired authorization code"}

    def test_token_endpoint_unavailable(self, client, httpx_mock: HTTPXMock):
        client.get("/auth")
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, status_code=503, text="down")

        response = client.get("/callback", params={"code": "aPrxCODE"})

        assert response.status_code == 500
        assert response.json()["error"] == "Authentication failed"

    def test_userinfo_failure_still_logs_in(self, client, httpx_mock: HTTPXMock):
        client.get("/auth")
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload())
        httpx_mock.add_response(method="GET", url=USERINFO_URL, status_code=403)

        response = client.get("/callback", params={"code": "aPrxCODE"})

        assert response.status_code == 302
        config = client.get("/api/lightning-config").json()
        assert config["authenticated"] is True
        assert config["config"]["userId"] == ""


class TestServerLogin:
    def test_client_credentials(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=ORG_TOKEN_URL, json=token_payload("server-token"))

        response = client.post("/auth/server")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["authType"] == "client_credentials"
        assert body["instanceUrl"] == INSTANCE_URL
        assert body["frontdoorUrl"].startswith(f"{INSTANCE_URL}/secur/frontdoor.jsp?sid=server-token")

        config = client.get("/api/lightning-config").json()
        assert config["config"]["sessionId"] == "server-token"
        assert config["config"]["userName"] == "Server Authentication (client_credentials)"

    def test_password_fallback(self, make_client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="POST", url=ORG_TOKEN_URL, status_code=400, json={"error": "invalid_grant"}
        )
        httpx_mock.add_response(method="POST", url=LOGIN_TOKEN_URL, json=token_payload("pw-token"))

        with make_client(username="integration@example.com", password="hunter2") as client:
            response = client.post("/auth/server")

        assert response.status_code == 200
        assert response.json()["authType"] == "password"

    def test_all_flows_fail(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="POST", url=ORG_TOKEN_URL, status_code=400, json={"error": "invalid_grant"}
        )

        response = client.post("/auth/server")

        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Authentication failed"
        assert body["details"]["clientCredentials"] == "invalid_grant"
        assert body["solutions"]

    def test_get_not_allowed(self, client):
        assert client.get("/auth/server").status_code == 405


class TestLightningConfig:
    def test_server_fallback(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=ORG_TOKEN_URL, json=token_payload("server-token"))

        body = client.get("/api/lightning-config").json()

        assert body["success"] is True
        assert body["authenticated"] is True
        assert body["config"]["sessionId"] == "server-token"
        assert body["config"]["userName"] == "Server Authentication (auto)"
        assert body["debug"]["serverAuthAttempted"] is True
        assert body["debug"]["usingServerFallback"] is True

    def test_fallback_is_not_stored(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(method="POST", url=ORG_TOKEN_URL, json=token_payload("server-token"))

        response = client.get("/api/lightning-config")

        assert "set-cookie" not in response.headers

    def test_unauthenticated(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            method="POST", url=ORG_TOKEN_URL, status_code=400, json={"error": "invalid_client"}
        )

        body = client.get("/api/lightning-config").json()

        assert body["success"] is True
        assert body["authenticated"] is False
        assert body["config"]["sessionId"] == ""
        assert body["config"]["lightningDomain"] == "example.my.salesforce.com"
        assert body["config"]["appId"] == "1UsTEST0000000001"
        assert body["debug"]["sessionExists"] is False
        assert body["debug"]["usingServerFallback"] is False

    def test_no_debug_outside_development(self, make_client, server_config, httpx_mock: HTTPXMock):
        server_config.environment = "production"
        httpx_mock.add_response(
            method="POST", url=ORG_TOKEN_URL, status_code=400, json={"error": "invalid_client"}
        )

        with make_client(server_config) as client:
            body = client.get("/api/lightning-config").json()

        assert "debug" not in body
