"""RikkaHub importer orchestrator.

This module provides the main entry point for the rikka_import package:
it opens a backup archive and runs the import phases in order, each phase
reading the id maps produced by the ones before it.
"""

import json
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rikka_import.config import RikkaImportConfig
from rikka_import.domain.upload_index import UploadFileIndex
from rikka_import.exceptions import (
    BackupNotFoundError,
    SettingsDocumentError,
    UnsupportedArchiveError,
)
from rikka_import.infra.archive import (
    ArchiveEntry,
    extract_sqlite_database,
    extract_uploads,
    find_entry,
    read_zip_archive,
)
from rikka_import.infra.sqlite import SqliteRowSource
from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.interfaces.settings_store import SettingsStoreInterface
from rikka_import.logging import get_logger, import_run_context
from rikka_import.services.assistants import AssistantImportContext, AssistantReconciler
from rikka_import.services.conversations import ConversationImportCounts, ConversationReconciler
from rikka_import.services.injections import InjectionReconciler
from rikka_import.services.providers import ProviderReconciler
from rikka_import.services.reconcile import MergeConflictPolicy, ReconciliationEngine, RestoreMode
from rikka_import.services.warnings import ImportWarnings
from rikka_import.services.world_books import WorldBookReconciler

__all__ = ["ImportResult", "RikkaHubImporter", "load_settings_document"]

logger = get_logger(__name__)


@dataclass
class ImportResult:
    """Statistics from one backup import."""

    providers: int = 0
    assistants: int = 0
    conversations: int = 0
    messages: int = 0
    files: int = 0
    mode_injections: int = 0
    lorebooks: int = 0
    warnings: list[str] = field(default_factory=list)


def load_settings_document(entries: list[ArchiveEntry]) -> dict[str, Any]:
    """Decode settings.json and lift a nested ``settings`` object.

    Keys of the nested object win over top-level keys of the same name.

    Raises:
        SettingsDocumentError: If settings.json is missing or not a JSON object
    """
    entry = find_entry(entries, lambda name: name.lower().endswith("settings.json"))
    if entry is None:
        raise SettingsDocumentError("Invalid RikkaHub backup: missing settings.json.")
    try:
        root = json.loads(entry.data.decode("utf-8", errors="replace"))
    except json.JSONDecodeError as e:
        raise SettingsDocumentError("Unable to parse settings.json") from e
    if not isinstance(root, dict):
        raise SettingsDocumentError("Unable to parse settings.json")

    root = {str(k): v for k, v in root.items()}
    nested = root.get("settings")
    if isinstance(nested, dict):
        return {**root, **{str(k): v for k, v in nested.items()}}
    return root


class RikkaHubImporter:
    """Imports RikkaHub backup archives into the local stores.

    Accepts implementation classes. Config is loaded from .env automatically.
    For custom implementations, set config_class = None and pass custom_config dict.

    Example:
        async with RikkaHubImporter(
            settings_store_class=RedisSettingsStore,
            conversation_store_class=MongoConversationStore,
        ) as importer:
            result = await importer.import_backup("rikkahub_backup.zip")
    """

    def __init__(
        self,
        settings_store_class: type[SettingsStoreInterface],
        conversation_store_class: type[ConversationStoreInterface],
        *,
        settings_store_custom_config: dict[str, Any] | None = None,
        conversation_store_custom_config: dict[str, Any] | None = None,
        config: RikkaImportConfig | None = None,
    ) -> None:
        """Initialize the importer with implementation classes.

        Args:
            settings_store_class: Key-value settings store implementation class
            conversation_store_class: Conversation store implementation class
            settings_store_custom_config: Custom config dict if
                settings_store_class.config_class is None
            conversation_store_custom_config: Custom config dict if
                conversation_store_class.config_class is None
            config: Import configuration (loads from .env when omitted)
        """
        self._config = config or RikkaImportConfig()

        self._settings_store_class = settings_store_class
        self._conversation_store_class = conversation_store_class
        self._settings_store_custom_config = settings_store_custom_config
        self._conversation_store_custom_config = conversation_store_custom_config

        # Instances (created on connect)
        self._settings_store: SettingsStoreInterface | None = None
        self._conversation_store: ConversationStoreInterface | None = None

        self._engine = ReconciliationEngine()
        self._connected = False

    async def _instantiate_class(
        self,
        cls: type,
        custom_config: dict[str, Any] | None,
    ) -> Any:
        """Instantiate an implementation class.

        If cls.config_class is set, instantiate config (loads from .env).
        If cls.config_class is None, use custom_config dict.
        """
        config_class = getattr(cls, "config_class", None)

        if config_class is None:
            # Custom implementation - use dict
            if custom_config is None:
                raise ValueError(
                    f"{cls.__name__} has config_class=None but no custom_config provided"
                )
            return await cls.from_dict(custom_config)
        else:
            # Standard implementation - instantiate settings (loads from .env)
            config = config_class()
            return await cls.from_config(config)

    async def _connect(self) -> None:
        """Instantiate the stores."""
        if self._connected:
            return

        self._settings_store = await self._instantiate_class(
            self._settings_store_class, self._settings_store_custom_config
        )
        try:
            self._conversation_store = await self._instantiate_class(
                self._conversation_store_class, self._conversation_store_custom_config
            )
        except BaseException:
            await self._settings_store.close()
            self._settings_store = None
            raise

        self._connected = True
        logger.info("rikka_import_connected")

    async def _disconnect(self) -> None:
        """Close all connections."""
        if self._settings_store and hasattr(self._settings_store, "close"):
            await self._settings_store.close()
        if self._conversation_store and hasattr(self._conversation_store, "close"):
            await self._conversation_store.close()
        self._settings_store = None
        self._conversation_store = None

        self._connected = False
        logger.info("rikka_import_disconnected")

    async def __aenter__(self) -> "RikkaHubImporter":
        """Async context manager entry - connects automatically."""
        await self._connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit - disconnects automatically."""
        await self._disconnect()

    def _ensure_connected(self) -> None:
        if not self._connected:
            raise RuntimeError(
                "RikkaHubImporter not connected. Use 'async with RikkaHubImporter(...) as importer:'"
            )

    # === MAIN WORKFLOW ===

    async def import_backup(
        self,
        path: str | Path,
        mode: RestoreMode = RestoreMode.MERGE,
        policy: MergeConflictPolicy = MergeConflictPolicy.MERGE_SAME_ITEM,
    ) -> ImportResult:
        """Import a RikkaHub backup archive.

        Settings entities are imported first (providers, assistants,
        instruction injections, world books), then conversations. Every
        phase persists before the next one starts; there is no rollback if
        a later phase fails.

        Args:
            path: Path to the .zip backup
            mode: Overwrite replaces local data, merge keeps it
            policy: How a merge treats records that match local ones

        Returns:
            ImportResult with counts and warnings

        Raises:
            BackupNotFoundError: The file does not exist
            UnsupportedArchiveError: The file is not a .zip
            ArchiveReadError: The archive cannot be read
            SettingsDocumentError: settings.json is missing or malformed
            DatabaseOpenError: The bundled database cannot be opened
        """
        self._ensure_connected()

        backup = Path(path)
        if not backup.is_file():
            raise BackupNotFoundError("RikkaHub backup file not found.")
        if backup.suffix.lower() != ".zip":
            raise UnsupportedArchiveError("RikkaHub import only supports .zip files.")

        with import_run_context(backup=backup.name, mode=mode.value, policy=policy.value):
            return await self._run_import(backup, mode, policy)

    async def _run_import(
        self,
        backup: Path,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> ImportResult:
        """Run the import phases for a validated archive path."""
        assert self._settings_store is not None
        assert self._conversation_store is not None

        logger.info("import_started", path=str(backup))
        settings = self._config.importer
        warnings = ImportWarnings(limit=settings.warning_limit)

        entries = read_zip_archive(backup)
        settings_root = load_settings_document(entries)

        # Step 1: Providers (publishes model tokens and provider aliases)
        providers = await ProviderReconciler(
            self._settings_store, self._engine, warnings
        ).import_providers(settings_root, mode, policy)

        # Step 2: Assistants (resolves model references against step 1)
        assistants = await AssistantReconciler(
            self._settings_store, self._engine, warnings, settings.default_context_size
        ).import_assistants(settings_root, providers, mode, policy)

        # Step 3: Injections and world books (remap assistant selections)
        mode_injections = await InjectionReconciler(
            self._settings_store, self._engine, warnings
        ).import_injections(settings_root, assistants, mode, policy)
        lorebooks = await WorldBookReconciler(
            self._settings_store, self._engine, warnings
        ).import_world_books(settings_root, assistants, mode, policy)

        # Step 4: Conversations
        if mode is RestoreMode.OVERWRITE:
            await self._conversation_store.clear_all()
        upload_index = UploadFileIndex()
        if settings.upload_dir is not None:
            upload_index = extract_uploads(entries, settings.upload_dir, warnings)
        counts = await self._import_conversations(
            entries, assistants, upload_index, warnings, mode, policy
        )

        result = ImportResult(
            providers=providers.imported_count,
            assistants=assistants.imported_count,
            conversations=counts.conversations,
            messages=counts.messages,
            files=upload_index.copied_files,
            mode_injections=mode_injections,
            lorebooks=lorebooks,
            warnings=warnings.to_list(),
        )
        logger.info(
            "import_completed",
            providers=result.providers,
            assistants=result.assistants,
            conversations=result.conversations,
            messages=result.messages,
            files=result.files,
            mode_injections=result.mode_injections,
            lorebooks=result.lorebooks,
            warnings=len(result.warnings),
        )
        return result

    async def _import_conversations(
        self,
        entries: list[ArchiveEntry],
        assistants: AssistantImportContext,
        upload_index: UploadFileIndex,
        warnings: ImportWarnings,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> ConversationImportCounts:
        """Extract the bundled database to a temp dir and import from it."""
        assert self._conversation_store is not None

        with tempfile.TemporaryDirectory(prefix=self._config.importer.temp_dir_prefix) as temp_dir:
            db_path = extract_sqlite_database(entries, Path(temp_dir))
            if db_path is None:
                warnings("rikka_hub.db not found, skipped conversation import.")
                return ConversationImportCounts()

            rows = SqliteRowSource(db_path)
            try:
                return await ConversationReconciler(
                    self._conversation_store, warnings
                ).import_conversations(rows, assistants, upload_index, mode, policy)
            finally:
                rows.close()
