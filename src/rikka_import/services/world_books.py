"""World book (lorebook) import phase."""

from typing import Any

from rikka_import.interfaces.settings_store import SettingsKeys, SettingsStoreInterface
from rikka_import.logging import get_logger
from rikka_import.models.world_book import (
    InjectionPosition,
    InjectionRole,
    WorldBookDTO,
    WorldBookEntryDTO,
)
from rikka_import.services.active_selection import WORLD_BOOK_SELECTION, ActiveSelectionRemapper
from rikka_import.services.assistants import AssistantImportContext
from rikka_import.services.reconcile import (
    EntitySpec,
    Incoming,
    MergeConflictPolicy,
    ReconciliationEngine,
    RestoreMode,
    match_id,
    match_normalized,
)
from rikka_import.services.stored import dump_records, load_json_list, load_records, save_json
from rikka_import.services.warnings import ImportWarnings
from rikka_import.utils.fields import (
    as_bool,
    as_int,
    as_map_list,
    first_non_null,
    pick_string,
    pick_value,
    string_list,
)
from rikka_import.utils.naming import new_uuid

__all__ = [
    "WORLD_BOOK_SPEC",
    "WorldBookReconciler",
    "merge_world_book",
    "prepare_entry",
    "prepare_world_book",
]

logger = get_logger(__name__)

_COLLECTION_KEYS = ("lorebooks", "loreBooks", "worldBooks", "world_books")


def _int_or(value: Any, default: int) -> int:
    parsed = as_int(value)
    return default if parsed is None else parsed


def _bool_or(value: Any, default: bool) -> bool:
    parsed = as_bool(value)
    return default if parsed is None else parsed


def prepare_entry(raw: dict[str, Any]) -> WorldBookEntryDTO:
    """Normalize one lorebook entry, generating an id when it has none."""
    return WorldBookEntryDTO(
        id=(pick_string(raw, ["id", "uuid"]) or "").strip() or new_uuid(()),
        name=(pick_string(raw, ["name", "title"]) or "").strip(),
        enabled=_bool_or(pick_value(raw, ["enabled", "isEnabled"]), True),
        priority=_int_or(pick_value(raw, ["priority"]), 0),
        position=InjectionPosition.parse(pick_value(raw, ["position", "injectPosition"])),
        content=(pick_string(raw, ["content", "text", "prompt"]) or "").strip(),
        inject_depth=_int_or(pick_value(raw, ["injectDepth", "depth"]), 4),
        role=InjectionRole.parse(pick_value(raw, ["role"])),
        keywords=string_list(pick_value(raw, ["keywords", "keys"])),
        use_regex=_bool_or(pick_value(raw, ["useRegex"]), False),
        case_sensitive=_bool_or(pick_value(raw, ["caseSensitive"]), False),
        scan_depth=_int_or(pick_value(raw, ["scanDepth"]), 4),
        constant_active=_bool_or(pick_value(raw, ["constantActive"]), False),
    )


def prepare_world_book(raw: dict[str, Any], index: int) -> tuple[str, WorldBookDTO]:
    source_id = (pick_string(raw, ["id", "uuid"]) or "").strip()
    entries = as_map_list(first_non_null(raw.get("entries"), raw.get("items")), map_key_id="id")
    book = WorldBookDTO(
        id=source_id or new_uuid(()),
        name=(pick_string(raw, ["name", "title"]) or "").strip() or f"Lorebook {index + 1}",
        description=(pick_string(raw, ["description", "desc"]) or "").strip(),
        enabled=_bool_or(pick_value(raw, ["enabled", "isEnabled"]), True),
        entries=[prepare_entry(entry) for entry in entries],
    )
    return source_id, book


def merge_world_book(local: WorldBookDTO, incoming: WorldBookDTO) -> WorldBookDTO:
    """Keep-local merge: entries are taken wholesale only when local has none.

    ``enabled`` can be switched on by an import but never off.
    """
    update: dict[str, Any] = {}
    if not local.description.strip() and incoming.description.strip():
        update["description"] = incoming.description
    if not local.entries and incoming.entries:
        update["entries"] = incoming.entries
    if not local.enabled and incoming.enabled:
        update["enabled"] = True
    return local.model_copy(update=update) if update else local


WORLD_BOOK_SPEC: EntitySpec[WorldBookDTO] = EntitySpec(
    kind="world_book",
    same_item=(match_id, match_normalized("name")),
    merge=merge_world_book,
    name_field="name",
)


class WorldBookReconciler:
    """Imports world books and their per-assistant selection."""

    def __init__(
        self,
        settings_store: SettingsStoreInterface,
        engine: ReconciliationEngine,
        warnings: ImportWarnings,
    ) -> None:
        self._store = settings_store
        self._engine = engine
        self._warnings = warnings
        self._selection = ActiveSelectionRemapper(settings_store)

    async def import_world_books(
        self,
        settings_root: dict[str, Any],
        assistants: AssistantImportContext,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> int:
        raw_books = as_map_list(
            first_non_null(*(settings_root.get(k) for k in _COLLECTION_KEYS)), map_key_id="id"
        )
        stored = await load_json_list(self._store, SettingsKeys.WORLD_BOOKS) or []
        existing = load_records(WorldBookDTO, stored, "world book", self._warnings)

        incoming: list[Incoming[WorldBookDTO]] = []
        for i, raw in enumerate(raw_books):
            source_id, book = prepare_world_book(raw, i)
            incoming.append(Incoming(record=book, map_key=source_id or f"__book_{i}"))

        outcome = self._engine.reconcile(WORLD_BOOK_SPEC, incoming, existing, mode, policy)
        await save_json(self._store, SettingsKeys.WORLD_BOOKS, dump_records(outcome.records))

        active = await self._selection.apply(
            SettingsKeys.WORLD_BOOKS_ACTIVE_IDS_BY_ASSISTANT,
            WORLD_BOOK_SELECTION,
            settings_root,
            assistants.id_map,
            outcome.id_map,
            outcome.final_ids,
            mode,
        )

        if not raw_books:
            self._warnings("No lorebooks found in settings.json.")
        logger.info(
            "world_books_imported",
            count=outcome.imported_count,
            total=len(outcome.records),
            active_assistants=len(active),
        )
        return outcome.imported_count
