"""Per-assistant active-selection maps.

Both instruction injections and world books can be switched on per
assistant. The export carries this as an explicit ``...ActiveIdsByAssistant``
map (or list), or only as id lists embedded in each assistant record.
Either way the selection is remapped onto local assistant and item ids and
unioned into the stored map.
"""

from dataclasses import dataclass
from typing import Any

from rikka_import.domain.id_map import IdMap
from rikka_import.interfaces.settings_store import GLOBAL_ASSISTANT_KEY, SettingsStoreInterface
from rikka_import.logging import get_logger
from rikka_import.services.reconcile import RestoreMode
from rikka_import.services.stored import load_json_map, save_json
from rikka_import.utils.fields import (
    as_map_list,
    extract_ids,
    first_non_null,
    pick_string,
    pick_value,
)

__all__ = [
    "INJECTION_SELECTION",
    "WORLD_BOOK_SELECTION",
    "ActiveSelectionRemapper",
    "SelectionSource",
    "extract_active_map",
    "parse_active_map",
    "remap_active_map",
    "union_active_maps",
]

logger = get_logger(__name__)

ActiveMap = dict[str, list[str]]


@dataclass(frozen=True)
class SelectionSource:
    """Where a selection can be found in a settings document.

    Attributes:
        explicit_keys: Top-level keys holding the map, most preferred first
        embedded_fields: Assistant fields holding that assistant's ids; the
            first non-empty one wins
    """

    explicit_keys: tuple[str, ...]
    embedded_fields: tuple[str, ...]


INJECTION_SELECTION = SelectionSource(
    explicit_keys=(
        "modeInjectionsActiveIdsByAssistant",
        "mode_injections_active_ids_by_assistant",
        "instructionInjectionsActiveIdsByAssistant",
        "instruction_injections_active_ids_by_assistant",
    ),
    embedded_fields=(
        "activeModeInjectionIds",
        "modeInjectionIds",
        "modeInjections",
        "instructionInjectionIds",
        "activeInstructionInjectionIds",
    ),
)

WORLD_BOOK_SELECTION = SelectionSource(
    explicit_keys=(
        "lorebooksActiveIdsByAssistant",
        "lorebooks_active_ids_by_assistant",
        "worldBooksActiveIdsByAssistant",
        "world_books_active_ids_by_assistant",
    ),
    embedded_fields=(
        "activeLorebookIds",
        "lorebookIds",
        "lorebooks",
        "activeWorldBookIds",
        "worldBookIds",
    ),
)


def _bucket(assistant_id: str) -> str:
    return assistant_id.strip() or GLOBAL_ASSISTANT_KEY


def parse_active_map(raw: Any) -> ActiveMap:
    """Parse ``{assistantId: ids}`` or ``[{assistantId, ids}, ...]``.

    A blank assistant id selects the global bucket. Entries without ids
    are dropped.
    """
    out: ActiveMap = {}
    if isinstance(raw, dict):
        for key, value in raw.items():
            ids = extract_ids(value)
            if ids:
                out[_bucket(str(key))] = ids
    elif isinstance(raw, list):
        for item in raw:
            if not isinstance(item, dict):
                continue
            record = {str(k): v for k, v in item.items()}
            assistant_id = pick_string(record, ["assistantId", "assistant_id", "id", "key"]) or ""
            ids = extract_ids(pick_value(record, ["ids", "activeIds", "items"]))
            if ids:
                out[_bucket(assistant_id)] = ids
    return out


def extract_active_map(settings_root: dict[str, Any], source: SelectionSource) -> ActiveMap:
    """Explicit map if present and non-empty, else the assistants' embedded ids."""
    explicit_raw = first_non_null(*(settings_root.get(k) for k in source.explicit_keys))
    explicit = parse_active_map(explicit_raw)
    if explicit:
        return explicit

    out: ActiveMap = {}
    for assistant in as_map_list(settings_root.get("assistants"), map_key_id="id"):
        assistant_id = pick_string(assistant, ["id", "uuid", "assistantId", "assistant_id"]) or ""
        assistant_id = assistant_id.strip()
        if not assistant_id:
            continue
        for field_name in source.embedded_fields:
            ids = extract_ids(pick_value(assistant, [field_name]))
            if ids:
                out[assistant_id] = ids
                break
    return out


def remap_active_map(
    source: ActiveMap,
    assistant_ids: IdMap,
    item_ids: IdMap,
    valid_ids: frozenset[str] | set[str],
) -> ActiveMap:
    """Translate a foreign selection into local ids.

    Args:
        source: Foreign assistant id -> foreign item ids
        assistant_ids: Assistant id map of this import
        item_ids: Item id map of this import
        valid_ids: Ids of every item stored after the phase

    Returns:
        Local assistant id -> local item ids; items that do not exist
        locally are dropped, as are assistants left with no items
    """
    out: ActiveMap = {}
    for assistant, ids in source.items():
        key = assistant.strip()
        if not key or key == GLOBAL_ASSISTANT_KEY:
            key = GLOBAL_ASSISTANT_KEY
        else:
            key = assistant_ids.resolve(key)
        mapped: dict[str, None] = {}
        for old_id in ids:
            clean = old_id.strip()
            if not clean:
                continue
            new_id = item_ids.resolve(clean)
            if new_id in valid_ids:
                mapped.setdefault(new_id, None)
        if mapped:
            out[key] = list(mapped)
    return out


def union_active_maps(existing: ActiveMap, incoming: ActiveMap) -> ActiveMap:
    """Union per assistant; assistants only present in ``existing`` are kept."""
    if not incoming:
        return existing
    out: ActiveMap = {key: list(dict.fromkeys(ids)) for key, ids in existing.items()}
    for key, ids in incoming.items():
        out[key] = list(dict.fromkeys([*out.get(key, []), *ids]))
    return out


class ActiveSelectionRemapper:
    """Reads, remaps and persists one active-selection map."""

    def __init__(self, settings_store: SettingsStoreInterface) -> None:
        self._store = settings_store

    async def load(self, key: str) -> ActiveMap:
        stored = await load_json_map(self._store, key)
        out: ActiveMap = {}
        for assistant, ids in stored.items():
            parsed = extract_ids(ids)
            if parsed:
                out[assistant] = parsed
        return out

    async def apply(
        self,
        key: str,
        source: SelectionSource,
        settings_root: dict[str, Any],
        assistant_ids: IdMap,
        item_ids: IdMap,
        valid_ids: frozenset[str],
        mode: RestoreMode,
    ) -> ActiveMap:
        """Merge the document's selection into the map stored under ``key``.

        Returns:
            The map as persisted
        """
        remapped = remap_active_map(
            extract_active_map(settings_root, source), assistant_ids, item_ids, valid_ids
        )
        existing = {} if mode is RestoreMode.OVERWRITE else await self.load(key)
        merged = union_active_maps(existing, remapped)
        await save_json(self._store, key, merged)
        logger.debug("active_selection_saved", key=key, assistants=len(merged))
        return merged
