"""Integration tests for the RikkaHub import pipeline.

Each test builds a real backup archive (settings.json plus a SQLite
database) and runs it through RikkaHubImporter with in-memory stores.
"""

import json
from collections.abc import Callable
from typing import Any

import pytest

from rikka_import import MergeConflictPolicy, RestoreMode
from rikka_import.config import RikkaImportConfig
from rikka_import.interfaces.settings_store import SettingsKeys
from rikka_import.orchestrator import RikkaHubImporter
from tests.conftest import BackupBuilder
from tests.mocks.memory_stores import InMemoryConversationStore, InMemorySettingsStore

ImporterFactory = Callable[[], RikkaHubImporter]


def stored(store: InMemorySettingsStore, key: SettingsKeys) -> Any:
    return json.loads(store.data[key.value])


class TestFullImport:
    """Integration tests for a first import into empty stores."""

    @pytest.mark.asyncio
    async def test_sample_backup(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        conversation_store: InMemoryConversationStore,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that every entity kind lands in the stores, linked up."""
        path = build_backup(sample_settings, sample_conversations, sample_nodes)

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert result.providers == 1
        assert result.assistants == 1
        assert result.mode_injections == 1
        assert result.lorebooks == 1
        assert result.conversations == 1
        assert result.messages == 3
        assert result.files == 0
        assert result.warnings == []

        [assistant] = stored(settings_store, SettingsKeys.ASSISTANTS)
        assert assistant["chat_model"] == {"provider_key": "OpenAI", "model_id": "gpt-4o"}
        assert stored(settings_store, SettingsKeys.WORLD_BOOKS_ACTIVE_IDS_BY_ASSISTANT) == {
            "asst-1": ["book-1"]
        }
        conversation = conversation_store.conversations["conv-1"]
        assert conversation.assistant_id == "asst-1"
        assert conversation.version_selections == {"node-1": 0, "node-2": 1}
        assert len(conversation_store.messages) == 3

    @pytest.mark.asyncio
    async def test_google_provider_resolved_by_model_uuid(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        conversation_store: InMemoryConversationStore,
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test an assistant that names its model only by the model's uuid."""
        settings = {
            "providers": [
                {
                    "id": "g-1",
                    "name": "Gemini",
                    "type": "google",
                    "baseUrl": "https://x/",
                    "apiKey": "k",
                    "models": [{"uuid": "uuid-flash", "modelId": "gemini-flash"}],
                }
            ],
            "assistants": [{"id": "asst-1", "name": "Helper", "chatModelId": "UUID-FLASH"}],
        }
        path = build_backup(settings, sample_conversations, sample_nodes)

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert (result.providers, result.assistants) == (1, 1)
        assert (result.conversations, result.messages) == (1, 3)
        provider = stored(settings_store, SettingsKeys.PROVIDER_CONFIGS)["Gemini"]
        assert provider["provider_type"] == "google"
        assert provider["base_url"] == "https://x"
        [assistant] = stored(settings_store, SettingsKeys.ASSISTANTS)
        assert assistant["chat_model"] == {"provider_key": "Gemini", "model_id": "gemini-flash"}
        assert conversation_store.conversations["conv-1"].version_selections["node-2"] == 1

    @pytest.mark.asyncio
    async def test_nested_settings_document(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        sample_settings: dict[str, Any],
    ) -> None:
        """Test that a document wrapping everything under "settings" is read."""
        path = build_backup(
            {"version": 2, "settings": sample_settings},
            settings_name="backup/Settings.JSON",
            db_name="backup/rikka_hub",
        )

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert result.providers == 1
        assert list(stored(settings_store, SettingsKeys.PROVIDER_CONFIGS)) == ["OpenAI"]

    @pytest.mark.asyncio
    async def test_missing_database(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        sample_settings: dict[str, Any],
    ) -> None:
        """Test that settings still import when the database is absent."""
        path = build_backup(sample_settings, include_db=False)

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert result.assistants == 1
        assert result.conversations == 0
        assert result.warnings == ["rikka_hub.db not found, skipped conversation import."]

    @pytest.mark.asyncio
    async def test_missing_node_table(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
    ) -> None:
        """Test that a database without message nodes only warns."""
        path = build_backup(sample_settings, sample_conversations, node_table=None)

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert result.conversations == 0
        assert result.warnings == ["message_node table not found in sqlite database."]

    @pytest.mark.asyncio
    async def test_upload_files_rewritten(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        conversation_store: InMemoryConversationStore,
        import_config: RikkaImportConfig,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that attachments point at the extracted upload files."""
        sample_nodes[0]["messages"][0]["parts"].append(
            {"type": "image", "url": "file:///data/user/0/me.rerere.rikkahub/files/upload/pic.png"}
        )
        sample_nodes[0]["messages"][0]["parts"].append(
            {"type": "document", "path": "/sdcard/gone.pdf", "fileName": "gone.pdf"}
        )
        path = build_backup(
            sample_settings,
            sample_conversations,
            sample_nodes,
            extra_files={"upload/pic.png": b"\x89PNG"},
        )

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        upload_dir = import_config.importer.upload_dir
        assert upload_dir is not None
        local_pic = (upload_dir / "pic.png").as_posix()
        assert result.files == 1
        assert (upload_dir / "pic.png").read_bytes() == b"\x89PNG"
        content = conversation_store.messages["msg-1"].content
        assert content.splitlines() == [
            "Hi there",
            f"[image:{local_pic}]",
            "[file:/sdcard/gone.pdf|gone.pdf|application/octet-stream]",
        ]
        assert result.warnings == [
            "Referenced file not found in upload payload: /sdcard/gone.pdf"
        ]

    @pytest.mark.asyncio
    async def test_unwritable_upload_does_not_abort(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        conversation_store: InMemoryConversationStore,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that an upload clashing with a directory only warns."""
        path = build_backup(
            sample_settings,
            sample_conversations,
            sample_nodes,
            extra_files={"upload/a/b.png": b"png", "upload/a": b"clash"},
        )

        async with make_importer() as importer:
            result = await importer.import_backup(path)

        assert result.files == 1
        assert (result.conversations, result.messages) == (1, 3)
        assert "conv-1" in conversation_store.conversations
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Unable to extract upload file upload/a:")


class TestRepeatedImport:
    """Integration tests for importing the same backup twice."""

    @pytest.mark.asyncio
    async def test_overwrite_is_repeatable(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        conversation_store: InMemoryConversationStore,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that two overwrite imports leave identical stores."""
        path = build_backup(sample_settings, sample_conversations, sample_nodes)

        async with make_importer() as importer:
            await importer.import_backup(path, mode=RestoreMode.OVERWRITE)
        settings_after_first = dict(settings_store.data)
        conversations_after_first = dict(conversation_store.conversations)
        messages_after_first = dict(conversation_store.messages)

        async with make_importer() as importer:
            await importer.import_backup(path, mode=RestoreMode.OVERWRITE)

        assert settings_store.data == settings_after_first
        assert conversation_store.conversations == conversations_after_first
        assert conversation_store.messages == messages_after_first

    @pytest.mark.asyncio
    async def test_merge_same_item_is_idempotent(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        conversation_store: InMemoryConversationStore,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that re-importing under merge_same_item grows nothing."""
        path = build_backup(sample_settings, sample_conversations, sample_nodes)

        async with make_importer() as importer:
            await importer.import_backup(path)
            second = await importer.import_backup(path)

        assert list(stored(settings_store, SettingsKeys.PROVIDER_CONFIGS)) == ["OpenAI"]
        assert len(stored(settings_store, SettingsKeys.ASSISTANTS)) == 1
        assert len(stored(settings_store, SettingsKeys.INSTRUCTION_INJECTIONS)) == 1
        assert len(stored(settings_store, SettingsKeys.WORLD_BOOKS)) == 1
        assert len(conversation_store.conversations) == 1
        assert len(conversation_store.messages) == 3
        assert (second.conversations, second.messages) == (0, 0)
        assert 'Skipped duplicated message id "msg-3".' in second.warnings

    @pytest.mark.asyncio
    async def test_duplicate_on_conflict_copies_everything(
        self,
        make_importer: ImporterFactory,
        build_backup: BackupBuilder,
        settings_store: InMemorySettingsStore,
        conversation_store: InMemoryConversationStore,
        sample_settings: dict[str, Any],
        sample_conversations: list[dict[str, Any]],
        sample_nodes: list[dict[str, Any]],
    ) -> None:
        """Test that duplicate_on_conflict keeps both copies, linked to each other."""
        path = build_backup(sample_settings, sample_conversations, sample_nodes)
        policy = MergeConflictPolicy.DUPLICATE_ON_CONFLICT

        async with make_importer() as importer:
            await importer.import_backup(path)
            second = await importer.import_backup(path, policy=policy)

        assert (second.conversations, second.messages) == (1, 3)
        order = stored(settings_store, SettingsKeys.PROVIDERS_ORDER)
        assert order == ["OpenAI", "OpenAI (RikkaHub)"]
        assistants = stored(settings_store, SettingsKeys.ASSISTANTS)
        assert [a["name"] for a in assistants] == ["Helper", "Helper (RikkaHub)"]
        copy = assistants[1]
        assert copy["chat_model"]["provider_key"] == "OpenAI (RikkaHub)"

        [duplicate] = [c for c in conversation_store.conversations.values() if c.id != "conv-1"]
        assert duplicate.title == "Hello (RikkaHub)"
        assert duplicate.assistant_id == copy["id"]
        assert len(conversation_store.messages) == 6
