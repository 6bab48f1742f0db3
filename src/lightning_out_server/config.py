"""Environment-driven configuration for the Lightning Out auth server."""

from __future__ import annotations

import os

import msgspec

from .logging_config import get_logger

logger = get_logger("config")

DEFAULT_LOGIN_URL = "https://login.salesforce.com"
DEFAULT_SESSION_SECRET = "change-me-in-production"
DEFAULT_ENCRYPTION_SALT = "lightning-out-server.sessions"


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class SalesforceConfig(msgspec.Struct, kw_only=True):
    """Connected App credentials and org endpoints."""

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = "http://localhost:3000/auth/callback"
    login_url: str = DEFAULT_LOGIN_URL
    domain: str = "login.salesforce.com"
    # Explicit token host for server-to-server flows (SALESFORCE_HOST)
    host: str | None = None
    is_sandbox: bool = False
    auth_flow: str | None = None
    username: str | None = None
    password: str | None = None
    security_token: str = ""
    scopes: list[str] = msgspec.field(default_factory=lambda: ["web", "id"])

    @property
    def force_password(self) -> bool:
        """True when SALESFORCE_AUTH_FLOW selects the username/password flow only."""
        return (self.auth_flow or "").lower() == "password"


class LightningOutConfig(msgspec.Struct, kw_only=True):
    """Lightning Out application and component identifiers."""

    app_id: str = "1UsHu000000oQTeKAM"
    component_name: str = "c-card-component"
    allowed_origins: list[str] = msgspec.field(default_factory=list)


class SessionConfig(msgspec.Struct, kw_only=True):
    """Session cookie and session store settings."""

    secret: str = DEFAULT_SESSION_SECRET
    cookie_name: str = "lightning_out.sid"
    max_age: int = 24 * 60 * 60
    storage_type: str = "memory"
    redis_url: str = "redis://localhost:6379"
    # Fernet key, or a passphrase stretched with encryption_salt
    encryption_key: str | None = None
    encryption_salt: str = DEFAULT_ENCRYPTION_SALT


class ServerConfig(msgspec.Struct, kw_only=True):
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 3000
    environment: str = "development"
    static_dir: str = "public"
    salesforce: SalesforceConfig = msgspec.field(default_factory=SalesforceConfig)
    lightning_out: LightningOutConfig = msgspec.field(default_factory=LightningOutConfig)
    session: SessionConfig = msgspec.field(default_factory=SessionConfig)

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def get_config() -> ServerConfig:
    """Load configuration from environment variables."""
    salesforce = SalesforceConfig(
        client_id=os.getenv("SALESFORCE_CLIENT_ID", ""),
        client_secret=os.getenv("SALESFORCE_CLIENT_SECRET", ""),
        redirect_uri=os.getenv("REDIRECT_URI", "http://localhost:3000/auth/callback"),
        login_url=os.getenv("SALESFORCE_LOGIN_URL", DEFAULT_LOGIN_URL).rstrip("/"),
        domain=os.getenv("SALESFORCE_DOMAIN", "login.salesforce.com"),
        host=os.getenv("SALESFORCE_HOST") or None,
        is_sandbox=os.getenv("SALESFORCE_IS_SANDBOX", "").lower() == "true",
        auth_flow=os.getenv("SALESFORCE_AUTH_FLOW") or None,
        username=os.getenv("SALESFORCE_USERNAME") or None,
        password=os.getenv("SALESFORCE_PASSWORD") or None,
        security_token=os.getenv("SALESFORCE_SECURITY_TOKEN", ""),
        scopes=_split_csv(os.getenv("OAUTH_SCOPES", "web,id")),
    )

    lightning_out = LightningOutConfig(
        app_id=os.getenv("SALESFORCE_APP_ID", "1UsHu000000oQTeKAM"),
        component_name=os.getenv("SALESFORCE_COMPONENT_NAME", "c-card-component"),
        allowed_origins=_split_csv(os.getenv("ALLOWED_ORIGINS", "")),
    )

    session = SessionConfig(
        secret=os.getenv("SESSION_SECRET", DEFAULT_SESSION_SECRET),
        cookie_name=os.getenv("SESSION_COOKIE_NAME", "lightning_out.sid"),
        max_age=int(os.getenv("SESSION_MAX_AGE", str(24 * 60 * 60))),
        storage_type=os.getenv("SESSION_STORAGE_TYPE", "memory").lower(),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
        encryption_key=os.getenv("STORAGE_ENCRYPTION_KEY") or None,
        encryption_salt=os.getenv("STORAGE_ENCRYPTION_SALT") or DEFAULT_ENCRYPTION_SALT,
    )

    config = ServerConfig(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT") or "3000"),
        environment=os.getenv("ENVIRONMENT", "development").lower(),
        static_dir=os.getenv("STATIC_DIR", "public"),
        salesforce=salesforce,
        lightning_out=lightning_out,
        session=session,
    )

    logger.debug(
        "Loaded config: environment=%s, port=%d, login_url=%s, domain=%s",
        config.environment,
        config.port,
        salesforce.login_url,
        salesforce.domain,
    )
    return config
