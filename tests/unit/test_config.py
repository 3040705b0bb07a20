"""Unit tests for rikka_import configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from rikka_import.config import ImportSettings, MongoSettings, RedisSettings, RikkaImportConfig
from rikka_import.infra.redis.client import _endpoint


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep a developer's .env and RIKKA_IMPORT_* variables out of the tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("UPLOAD_DIR", "WARNING_LIMIT", "DEFAULT_CONTEXT_SIZE", "REDIS_URL"):
        monkeypatch.delenv(f"RIKKA_IMPORT_{name}", raising=False)


class TestImportSettings:
    """Tests for ImportSettings."""

    def test_defaults(self) -> None:
        settings = ImportSettings()

        assert settings.warning_limit == 200
        assert settings.default_context_size == 64
        assert settings.upload_dir is None

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RIKKA_IMPORT_UPLOAD_DIR", "/srv/upload")
        monkeypatch.setenv("RIKKA_IMPORT_WARNING_LIMIT", "5")

        settings = ImportSettings()

        assert settings.upload_dir == Path("/srv/upload")
        assert settings.warning_limit == 5

    def test_blank_upload_dir_is_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RIKKA_IMPORT_UPLOAD_DIR", "  ")

        assert ImportSettings().upload_dir is None

    def test_upload_dir_expands_home(self) -> None:
        settings = ImportSettings(upload_dir=Path("~/rikka"))

        assert settings.upload_dir == Path.home() / "rikka"

    @pytest.mark.parametrize(
        "field, value",
        [("warning_limit", 0), ("default_context_size", 0), ("default_context_size", 5000)],
    )
    def test_rejects_out_of_range(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            ImportSettings(**{field: value})


class TestStoreSettings:
    """Tests for the store connection settings."""

    def test_secrets_hidden(self) -> None:
        redis = RedisSettings(url="redis://:hunter2@cache:6379/1")
        mongo = MongoSettings(uri="mongodb://user:hunter2@db:27017")

        assert "hunter2" not in repr(redis)
        assert "hunter2" not in repr(mongo)
        assert redis.url.get_secret_value().endswith("cache:6379/1")

    def test_aggregate_reads_environment_on_creation(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("RIKKA_IMPORT_REDIS_URL", "redis://cache:6380/2")

        config = RikkaImportConfig()

        assert config.redis.url.get_secret_value() == "redis://cache:6380/2"
        assert config.importer.warning_limit == 200

    def test_redis_log_endpoint_drops_credentials(self) -> None:
        settings = RedisSettings(url="redis://:hunter2@cache:6380/1")

        assert _endpoint(settings.url) == "cache:6380/1"
