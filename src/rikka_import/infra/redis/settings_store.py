"""Redis-backed settings store for rikka_import."""

from typing import Any, Self

from rikka_import.config import RedisSettings
from rikka_import.infra.redis.client import RedisClient
from rikka_import.interfaces.settings_store import SettingsStoreInterface
from rikka_import.logging import get_logger

__all__ = [
    "RedisSettingsStore",
]

logger = get_logger(__name__)


class RedisSettingsStore(SettingsStoreInterface):
    """Redis implementation of SettingsStoreInterface.

    Every settings key maps to one Redis string holding the JSON blob.
    """

    config_class = RedisSettings

    def __init__(self, client: RedisClient) -> None:
        """Initialize store with a Redis client.

        Args:
            client: Connected RedisClient instance
        """
        self._client = client
        self._owns_client = False

    @classmethod
    async def from_config(cls, config: RedisSettings) -> Self:
        """Factory method for RikkaHubImporter instantiation.

        Args:
            config: Redis settings

        Returns:
            Connected RedisSettingsStore instance
        """
        client = RedisClient(config)
        await client.connect()
        instance = cls(client)
        instance._owns_client = True
        return instance

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict.

        Args:
            config: Dictionary with Redis settings

        Returns:
            Connected RedisSettingsStore instance
        """
        settings = RedisSettings(**config)
        return await cls.from_config(settings)

    async def close(self) -> None:
        """Close owned resources."""
        if self._owns_client and self._client:
            await self._client.disconnect()

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._client.set(key, value)
        logger.debug("setting_saved", key=key, size=len(value))

    async def delete(self, key: str) -> None:
        await self._client.delete(key)
