"""Shared test fixtures for rikka_import.

This module provides pytest fixtures used across all tests, including a
builder for real backup archives (settings.json plus a SQLite database).
"""

import copy
import json
import sqlite3
import zipfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pytest

from rikka_import.config import ImportSettings, RikkaImportConfig
from rikka_import.domain.id_map import IdMap
from rikka_import.models.assistant import ModelRef
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO
from rikka_import.orchestrator import RikkaHubImporter
from rikka_import.services.assistants import AssistantImportContext
from rikka_import.services.providers import ProviderImportContext
from rikka_import.services.reconcile import ReconciliationEngine
from rikka_import.services.warnings import ImportWarnings
from tests.mocks.memory_stores import InMemoryConversationStore, InMemorySettingsStore

CONVERSATION_COLUMNS = (
    "id",
    "assistant_id",
    "title",
    "create_at",
    "update_at",
    "truncate_index",
    "is_pinned",
)
NODE_COLUMNS = ("id", "conversation_id", "node_index", "messages", "select_index")

SAMPLE_SETTINGS: dict[str, Any] = {
    "providers": [
        {
            "id": "prov-1",
            "name": "OpenAI",
            "type": "openai",
            "baseUrl": "https://api.openai.com/v1/",
            "apiKey": "sk-test",
            "enabled": True,
            "models": [
                {"id": "model-uuid-1", "modelId": "gpt-4o", "displayName": "GPT-4o"},
            ],
        }
    ],
    "assistants": [
        {
            "id": "asst-1",
            "name": "Helper",
            "chatModelId": "model-uuid-1",
            "systemPrompt": "Be helpful.",
            "temperature": 0.7,
            "contextMessageSize": 32,
            "modeInjectionIds": ["inj-1"],
            "lorebookIds": ["book-1"],
        }
    ],
    "modeInjections": [
        {"id": "inj-1", "title": "Concise", "prompt": "Answer briefly."},
    ],
    "lorebooks": [
        {
            "id": "book-1",
            "name": "World",
            "description": "Setting notes",
            "entries": [
                {
                    "id": "entry-1",
                    "name": "Capital",
                    "content": "The capital is Rikka.",
                    "keywords": ["capital"],
                    "position": "AFTER_SYSTEM_PROMPT",
                }
            ],
        }
    ],
}

SAMPLE_CONVERSATIONS: list[dict[str, Any]] = [
    {
        "id": "conv-1",
        "assistant_id": "asst-1",
        "title": "Hello",
        "create_at": 1704067200000,
        "update_at": 1704067300000,
        "truncate_index": -1,
        "is_pinned": 0,
    }
]

SAMPLE_NODES: list[dict[str, Any]] = [
    {
        "id": "node-1",
        "conversation_id": "conv-1",
        "node_index": 0,
        "select_index": 0,
        "messages": [
            {
                "id": "msg-1",
                "role": "USER",
                "parts": [{"type": "text", "text": "Hi there"}],
                "createdAt": "2024-01-01T00:00:10Z",
            }
        ],
    },
    {
        "id": "node-2",
        "conversation_id": "conv-1",
        "node_index": 1,
        "select_index": 1,
        "messages": [
            {
                "id": "msg-2",
                "role": "ASSISTANT",
                "parts": [{"type": "text", "text": "Hello!"}],
                "modelId": "model-uuid-1",
            },
            {
                "id": "msg-3",
                "role": "ASSISTANT",
                "parts": [{"type": "text", "text": "Hi, how can I help?"}],
            },
        ],
    },
]


def write_sqlite_database(
    path: Path,
    conversations: list[dict[str, Any]],
    nodes: list[dict[str, Any]],
    *,
    conversation_table: str = "ConversationEntity",
    node_table: str | None = "message_node",
) -> Path:
    """Create a database shaped like the RikkaHub one."""
    conn = sqlite3.connect(path)
    try:
        conn.execute(
            f"CREATE TABLE {conversation_table} "
            "(id TEXT PRIMARY KEY, assistant_id TEXT, title TEXT, create_at INTEGER, "
            "update_at INTEGER, truncate_index INTEGER, is_pinned INTEGER)"
        )
        for row in conversations:
            conn.execute(
                f"INSERT INTO {conversation_table} VALUES (?, ?, ?, ?, ?, ?, ?)",
                [row.get(c) for c in CONVERSATION_COLUMNS],
            )
        if node_table is not None:
            conn.execute(
                f"CREATE TABLE {node_table} "
                "(id TEXT PRIMARY KEY, conversation_id TEXT, node_index INTEGER, "
                "messages TEXT, select_index INTEGER)"
            )
            for row in nodes:
                values = dict(row)
                values["messages"] = json.dumps(values.get("messages", []))
                conn.execute(
                    f"INSERT INTO {node_table} VALUES (?, ?, ?, ?, ?)",
                    [values.get(c) for c in NODE_COLUMNS],
                )
        conn.commit()
    finally:
        conn.close()
    return path


BackupBuilder = Callable[..., Path]


@pytest.fixture
def build_backup(tmp_path: Path) -> BackupBuilder:
    """Return a function writing a backup zip and returning its path."""
    counter = {"n": 0}

    def _build(
        settings: dict[str, Any] | bytes | None = None,
        conversations: list[dict[str, Any]] | None = None,
        nodes: list[dict[str, Any]] | None = None,
        *,
        include_db: bool = True,
        settings_name: str = "settings.json",
        db_name: str = "rikka_hub.db",
        node_table: str | None = "message_node",
        extra_files: dict[str, bytes] | None = None,
    ) -> Path:
        counter["n"] += 1
        work = tmp_path / f"bundle_{counter['n']}"
        work.mkdir()
        archive_path = work / "backup.zip"
        with zipfile.ZipFile(archive_path, "w") as archive:
            if settings is not None:
                data = settings if isinstance(settings, bytes) else json.dumps(settings).encode()
                archive.writestr(settings_name, data)
            if include_db:
                db_path = write_sqlite_database(
                    work / "source.db",
                    conversations or [],
                    nodes or [],
                    node_table=node_table,
                )
                archive.write(db_path, db_name)
            for name, payload in (extra_files or {}).items():
                archive.writestr(name, payload)
        return archive_path

    return _build


@pytest.fixture
def sample_settings() -> dict[str, Any]:
    return copy.deepcopy(SAMPLE_SETTINGS)


@pytest.fixture
def sample_conversations() -> list[dict[str, Any]]:
    return copy.deepcopy(SAMPLE_CONVERSATIONS)


@pytest.fixture
def sample_nodes() -> list[dict[str, Any]]:
    return copy.deepcopy(SAMPLE_NODES)


# Store fixtures
@pytest.fixture
def settings_store() -> InMemorySettingsStore:
    return InMemorySettingsStore()


@pytest.fixture
def conversation_store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def warnings() -> ImportWarnings:
    return ImportWarnings()


@pytest.fixture
def engine() -> ReconciliationEngine:
    return ReconciliationEngine()


@pytest.fixture
def import_config(tmp_path: Path) -> RikkaImportConfig:
    return RikkaImportConfig(importer=ImportSettings(upload_dir=tmp_path / "upload"))


@pytest.fixture
def make_importer(
    settings_store: InMemorySettingsStore,
    conversation_store: InMemoryConversationStore,
    import_config: RikkaImportConfig,
) -> Callable[[], RikkaHubImporter]:
    """Importers built by this factory all share the same store contents."""

    def _make() -> RikkaHubImporter:
        return RikkaHubImporter(
            settings_store_class=InMemorySettingsStore,
            conversation_store_class=InMemoryConversationStore,
            settings_store_custom_config={"data": settings_store.data},
            conversation_store_custom_config={
                "conversations": conversation_store.conversations,
                "messages": conversation_store.messages,
            },
            config=import_config,
        )

    return _make


# Sample data fixtures
@pytest.fixture
def provider_context() -> ProviderImportContext:
    """Provider phase output with one OpenAI provider serving gpt-4o."""
    context = ProviderImportContext(imported_count=1, provider_keys=frozenset({"OpenAI"}))
    for alias in ("prov-1", "OpenAI"):
        context.aliases.register(alias, "OpenAI")
    for token in ("model-uuid-1", "gpt-4o"):
        context.token_index.register(token, ModelRef(provider_key="OpenAI", model_id="gpt-4o"))
    return context


@pytest.fixture
def sample_conversation() -> ConversationDTO:
    return ConversationDTO(
        id="conv-1",
        title="Hello",
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        updated_at=datetime(2024, 1, 1, 0, 5, tzinfo=UTC),
        version_selections={"node-2": 0},
    )


@pytest.fixture
def sample_stored_messages() -> list[ChatMessageDTO]:
    timestamp = datetime(2024, 1, 1, tzinfo=UTC)
    return [
        ChatMessageDTO(
            id="local-1",
            conversation_id="conv-1",
            role="user",
            content="Hi there",
            timestamp=timestamp,
            group_id="node-1",
        ),
        ChatMessageDTO(
            id="local-2",
            conversation_id="conv-1",
            role="assistant",
            content="Hello!",
            timestamp=timestamp,
            group_id="node-2",
        ),
    ]


@pytest.fixture
def assistant_context() -> AssistantImportContext:
    """Assistant phase output in which asst-1 kept its id."""
    return AssistantImportContext(
        imported_count=1,
        id_map=IdMap.from_mapping({"asst-1": "asst-1"}),
        final_ids=frozenset({"asst-1"}),
    )
