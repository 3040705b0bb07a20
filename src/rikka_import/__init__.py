"""rikka_import - Import RikkaHub backup archives into local stores.

This package provides tools for:
- Reading RikkaHub .zip backups (settings.json plus the rikka_hub.db database)
- Reconciling providers, assistants, instruction injections and world books
  with local settings under overwrite or merge policies
- Rebuilding branching conversations as versioned message groups
- Rewriting file references onto extracted upload files

Example usage:
    from rikka_import import (
        RikkaHubImporter,
        RedisSettingsStore,
        MongoConversationStore,
        RestoreMode,
    )

    # Simple usage - config loaded from .env automatically
    async with RikkaHubImporter(
        settings_store_class=RedisSettingsStore,
        conversation_store_class=MongoConversationStore,
    ) as importer:
        result = await importer.import_backup("rikkahub_backup.zip", mode=RestoreMode.MERGE)
        print(result.conversations, result.warnings)
"""

__version__ = "0.1.0"

from rikka_import.exceptions import RikkaImportError

# Implementations
from rikka_import.infra.mongo.conversation_store import MongoConversationStore
from rikka_import.infra.redis.settings_store import RedisSettingsStore
from rikka_import.infra.sqlite.row_source import SqliteRowSource

# Interfaces
from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.interfaces.row_source import RowSourceInterface
from rikka_import.interfaces.settings_store import SettingsStoreInterface

# Orchestrator
from rikka_import.orchestrator import ImportResult, RikkaHubImporter
from rikka_import.services.reconcile import MergeConflictPolicy, RestoreMode

__all__ = [  # noqa: RUF022
    # Orchestrator
    "RikkaHubImporter",
    "ImportResult",
    "RestoreMode",
    "MergeConflictPolicy",
    "RikkaImportError",
    # Implementations
    "MongoConversationStore",
    "RedisSettingsStore",
    "SqliteRowSource",
    # Interfaces
    "ConversationStoreInterface",
    "RowSourceInterface",
    "SettingsStoreInterface",
]
