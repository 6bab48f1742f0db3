"""Key-value store behind the server-side sessions.

Sessions hold PKCE verifiers and Salesforce access tokens, so the store can
be Fernet-encrypted, and every record is clamped to the session lifetime
so no entry outlives the cookie that points at it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .config import SessionConfig
from .logging_config import get_logger

if TYPE_CHECKING:
    from key_value.aio.protocols.key_value import AsyncKeyValue

logger = get_logger("storage")

STORAGE_TYPES = ("memory", "redis")


def _backend(config: SessionConfig) -> "AsyncKeyValue":
    if config.storage_type == "redis":
        from key_value.aio.stores.redis import RedisStore

        logger.debug("Using Redis session store: url=%s", config.redis_url)
        return RedisStore(url=config.redis_url)

    from key_value.aio.stores.memory import MemoryStore

    return MemoryStore()


def _encrypted(storage: "AsyncKeyValue", config: SessionConfig) -> "AsyncKeyValue":
    from cryptography.fernet import Fernet
    from key_value.aio.wrappers.encryption.fernet import FernetEncryptionWrapper

    key = config.encryption_key or ""
    try:
        fernet = Fernet(key.encode())
    except ValueError:
        # Passphrases are stretched with PBKDF2 over the configured salt
        logger.debug("Deriving session encryption key from passphrase")
        return FernetEncryptionWrapper(
            storage, source_material=key, salt=config.encryption_salt
        )
    return FernetEncryptionWrapper(storage, fernet=fernet)


def create_storage(config: SessionConfig) -> "AsyncKeyValue":
    """Build the session store described by ``config``.

    Args:
        config: Session settings (``SESSION_STORAGE_TYPE``, ``REDIS_URL``,
            ``STORAGE_ENCRYPTION_KEY``, ``STORAGE_ENCRYPTION_SALT``,
            ``SESSION_MAX_AGE``)

    Returns:
        Store whose writes expire after at most ``config.max_age`` seconds

    Raises:
        ValueError: If the storage type is not one of STORAGE_TYPES
    """
    if config.storage_type not in STORAGE_TYPES:
        raise ValueError(f"Unknown storage type: {config.storage_type}")

    from key_value.aio.wrappers.ttl_clamp import TTLClampWrapper

    storage = _backend(config)
    if config.encryption_key:
        storage = _encrypted(storage, config)

    logger.info(
        "Session storage ready: type=%s, encrypted=%s, max_ttl=%ds",
        config.storage_type,
        bool(config.encryption_key),
        config.max_age,
    )
    return TTLClampWrapper(
        storage, min_ttl=1, max_ttl=config.max_age, missing_ttl=config.max_age
    )
