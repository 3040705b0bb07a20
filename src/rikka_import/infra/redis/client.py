"""Redis client for rikka_import.

This module provides an async Redis client wrapper used by the
key-value settings store.
"""

from typing import TYPE_CHECKING, Any
from urllib.parse import urlsplit

from pydantic import SecretStr

from rikka_import.config import RedisSettings
from rikka_import.exceptions import StoreError
from rikka_import.logging import get_logger
from rikka_import.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from redis.asyncio import Redis

__all__ = [
    "RedisClient",
]

logger = get_logger(__name__)

get_async_redis = lazy_import("redis.asyncio", "Redis")
get_redis_error = lazy_import("redis.exceptions", "RedisError")


def _endpoint(url: SecretStr) -> str:
    """Host, port and db of a Redis URL, without credentials."""
    parts = urlsplit(url.get_secret_value())
    return f"{parts.hostname or 'localhost'}:{parts.port or 6379}{parts.path}"


class RedisClient:
    """Async Redis client wrapper.

    Keys are namespaced with ``settings.key_prefix``.

    Example:
        client = RedisClient(settings)
        await client.connect()
        await client.set("assistants_v1", "[]")
        value = await client.get("assistants_v1")
        await client.disconnect()
    """

    def __init__(self, settings: RedisSettings) -> None:
        """Initialize client with settings.

        Args:
            settings: Redis connection settings
        """
        self._settings = settings
        self._redis = None  # type: ignore[type-arg]

    @property
    def is_connected(self) -> bool:
        """Check if connected to Redis."""
        return self._redis is not None

    async def connect(self) -> None:
        """Initialize connection to Redis.

        Raises:
            StoreError: If Redis cannot be reached
        """
        if self._redis is not None:
            return

        Redis = get_async_redis()  # noqa: N806
        redis = Redis.from_url(
            self._settings.url.get_secret_value(),
            decode_responses=True,
            socket_timeout=self._settings.socket_timeout,
            socket_connect_timeout=self._settings.socket_timeout,
        )
        try:
            # Verify connection
            await redis.ping()
        except get_redis_error() as e:
            await redis.aclose()
            raise StoreError(f"Unable to connect to Redis: {e}") from e
        self._redis = redis
        logger.info("connected_to_redis", endpoint=_endpoint(self._settings.url))

    async def disconnect(self) -> None:
        """Close connection to Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            logger.info("disconnected_from_redis")

    @property
    def client(self) -> "Redis":  # type: ignore[type-arg]
        """Get Redis client instance.

        Raises:
            StoreError: If not connected
        """
        if self._redis is None:
            raise StoreError("RedisClient not connected. Call connect() first.")
        return self._redis

    def _key(self, key: str) -> str:
        return f"{self._settings.key_prefix}{key}"

    async def get(self, key: str) -> str | None:
        """Get value from Redis.

        Args:
            key: Unprefixed key

        Returns:
            Stored value or None if not found
        """
        try:
            return await self.client.get(self._key(key))  # type: ignore[no-any-return]
        except get_redis_error() as e:
            logger.error("redis_get_error", key=key, error=str(e))
            raise StoreError(f"Redis read failed for {key}: {e}") from e

    async def set(self, key: str, value: str) -> None:
        """Set value in Redis.

        Args:
            key: Unprefixed key
            value: Value to store
        """
        try:
            await self.client.set(self._key(key), value)
        except get_redis_error() as e:
            logger.error("redis_set_error", key=key, error=str(e))
            raise StoreError(f"Redis write failed for {key}: {e}") from e

    async def delete(self, key: str) -> None:
        """Delete key from Redis.

        Args:
            key: Unprefixed key to delete
        """
        try:
            await self.client.delete(self._key(key))
        except get_redis_error() as e:
            logger.error("redis_delete_error", key=key, error=str(e))
            raise StoreError(f"Redis delete failed for {key}: {e}") from e

    async def __aenter__(self) -> "RedisClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.disconnect()
