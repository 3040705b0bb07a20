"""Configuration management for rikka_import.

Every settings class reads its own environment prefix and the optional
``.env`` file:

    RIKKA_IMPORT_UPLOAD_DIR=/var/lib/rikka/upload
    RIKKA_IMPORT_REDIS_URL=redis://localhost:6379/0
    RIKKA_IMPORT_MONGO_URI=mongodb://localhost:27017
"""

from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rikka_import.models.assistant import CONTEXT_SIZE_MAX, CONTEXT_SIZE_MIN

__all__ = [
    "ImportSettings",
    "MongoSettings",
    "RedisSettings",
    "RikkaImportConfig",
]


def _env(prefix: str = "") -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


class ImportSettings(BaseSettings):
    """Settings that shape a single import run.

    Attributes:
        warning_limit: Most warnings kept in an ImportResult
        default_context_size: Context size for assistants that carry none
        upload_dir: Extraction target for archive files below ``upload/``;
            when unset, uploads are not extracted and file references are
            only normalized
        temp_dir_prefix: Prefix of the directory the database is extracted to
    """

    model_config = _env("RIKKA_IMPORT_")

    warning_limit: int = Field(default=200, ge=1)
    default_context_size: int = Field(default=64, ge=CONTEXT_SIZE_MIN, le=CONTEXT_SIZE_MAX)
    upload_dir: Path | None = None
    temp_dir_prefix: str = "rikka_import_"

    @field_validator("upload_dir", mode="before")
    @classmethod
    def _blank_upload_dir(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("upload_dir")
    @classmethod
    def _expand_upload_dir(cls, value: Path | None) -> Path | None:
        return value.expanduser() if value is not None else None


class RedisSettings(BaseSettings):
    """Redis connection for the key-value settings store."""

    model_config = _env("RIKKA_IMPORT_REDIS_")

    url: SecretStr = SecretStr("redis://localhost:6379/0")
    key_prefix: str = "rikka_import:"
    socket_timeout: float = Field(default=5.0, gt=0)


class MongoSettings(BaseSettings):
    """MongoDB connection for the conversation store."""

    model_config = _env("RIKKA_IMPORT_MONGO_")

    uri: SecretStr = SecretStr("mongodb://localhost:27017")
    database: str = "rikka_import"
    collection_prefix: str = ""
    server_selection_timeout_ms: int = Field(default=5000, gt=0)


class RikkaImportConfig(BaseSettings):
    """Main configuration aggregating all settings.

    Example usage:
        config = RikkaImportConfig()
        limit = config.importer.warning_limit
    """

    model_config = _env()

    importer: ImportSettings = Field(default_factory=ImportSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    mongo: MongoSettings = Field(default_factory=MongoSettings)
