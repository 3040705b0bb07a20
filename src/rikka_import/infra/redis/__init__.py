"""Redis infrastructure for rikka_import."""

from rikka_import.infra.redis.client import RedisClient
from rikka_import.infra.redis.settings_store import RedisSettingsStore

__all__ = ["RedisClient", "RedisSettingsStore"]
