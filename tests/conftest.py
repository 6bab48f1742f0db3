"""Shared fixtures for Lightning Out server tests."""

from contextlib import contextmanager

from msgspec import structs
import pytest
from key_value.aio.stores.memory import MemoryStore
from starlette.testclient import TestClient

from lightning_out_server.app import create_app
from lightning_out_server.config import LightningOutConfig, SalesforceConfig, ServerConfig

LOGIN_TOKEN_URL = "https://login.salesforce.com/services/oauth2/token"
ORG_TOKEN_URL = "https://example.my.salesforce.com/services/oauth2/token"
INSTANCE_URL = "https://example.my.salesforce.com"


def token_payload(access_token: str = "00Dxx!AQ0token", **extra) -> dict:
    """Build a Salesforce token endpoint response body."""
    payload = {
        "access_token": access_token,
        "instance_url": INSTANCE_URL,
        "id": "https://login.salesforce.com/id/00Dxx0000000001/005xx0000000001",
        "token_type": "Bearer",
        "issued_at": "1700000000000",
        "signature": "c2lnbmF0dXJl",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def salesforce_config() -> SalesforceConfig:
    return SalesforceConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        redirect_uri="http://localhost:3000/callback",
        login_url="https://login.salesforce.com",
        domain="example.my.salesforce.com",
    )


@pytest.fixture
def server_config(salesforce_config, tmp_path) -> ServerConfig:
    return ServerConfig(
        environment="development",
        static_dir=str(tmp_path / "no-static"),
        salesforce=salesforce_config,
        lightning_out=LightningOutConfig(app_id="1UsTEST0000000001", component_name="c-card-component"),
    )


@pytest.fixture
def make_client(server_config):
    """Return a context manager that runs the app under a TestClient.

    Keyword arguments override fields of the Salesforce configuration.
    """

    @contextmanager
    def _make_client(config: ServerConfig | None = None, **salesforce_overrides):
        config = config or server_config
        if salesforce_overrides:
            config.salesforce = structs.replace(config.salesforce, **salesforce_overrides)

        app = create_app(config, storage=MemoryStore())
        with TestClient(app, raise_server_exceptions=False, follow_redirects=False) as client:
            yield client

    return _make_client


@pytest.fixture
def client(make_client):
    with make_client() as test_client:
        yield test_client
