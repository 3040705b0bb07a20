"""Instruction injection ("mode injection") import phase."""

from typing import Any

from rikka_import.interfaces.settings_store import (
    GLOBAL_ASSISTANT_KEY,
    SettingsKeys,
    SettingsStoreInterface,
)
from rikka_import.logging import get_logger
from rikka_import.models.injection import InstructionInjectionDTO
from rikka_import.services.active_selection import INJECTION_SELECTION, ActiveSelectionRemapper
from rikka_import.services.assistants import AssistantImportContext
from rikka_import.services.reconcile import (
    EntitySpec,
    Incoming,
    MergeConflictPolicy,
    ReconciliationEngine,
    RestoreMode,
    match_exact,
    match_id,
    match_normalized,
    merge_keep_local,
)
from rikka_import.services.stored import dump_records, load_json_list, load_records, save_json
from rikka_import.services.warnings import ImportWarnings
from rikka_import.utils.fields import as_map_list, first_non_null, pick_string
from rikka_import.utils.naming import new_uuid

__all__ = [
    "INJECTION_SPEC",
    "InjectionReconciler",
    "prepare_injection",
]

logger = get_logger(__name__)

_COLLECTION_KEYS = (
    "modeInjections",
    "mode_injections",
    "instructionInjections",
    "instruction_injections",
)


def prepare_injection(
    raw: dict[str, Any], index: int
) -> tuple[str, InstructionInjectionDTO] | None:
    """Convert one foreign injection; records with neither title nor prompt yield None."""
    source_id = (pick_string(raw, ["id", "uuid"]) or "").strip()
    title = (pick_string(raw, ["title", "name"]) or "").strip()
    prompt = (pick_string(raw, ["prompt", "content", "text"]) or "").strip()
    if not title and not prompt:
        return None
    injection = InstructionInjectionDTO(
        id=source_id or new_uuid(()),
        title=title or f"Mode Injection {index + 1}",
        prompt=prompt,
        group=(pick_string(raw, ["group"]) or "").strip(),
    )
    return source_id, injection


def _merge_injection(
    local: InstructionInjectionDTO, incoming: InstructionInjectionDTO
) -> InstructionInjectionDTO:
    return merge_keep_local(local, incoming, skip_fields=("id",))


INJECTION_SPEC: EntitySpec[InstructionInjectionDTO] = EntitySpec(
    kind="instruction_injection",
    same_item=(match_id, match_normalized("title"), match_exact("prompt")),
    merge=_merge_injection,
    name_field="title",
)


class InjectionReconciler:
    """Imports instruction injections and their per-assistant selection."""

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

    async def import_injections(
        self,
        settings_root: dict[str, Any],
        assistants: AssistantImportContext,
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> int:
        """Reconcile injections, then remap the active selection onto them.

        The global selection is mirrored into the single-id and id-list
        keys read by older clients.

        Returns:
            Number of injections merged or added
        """
        raw_items = as_map_list(
            first_non_null(*(settings_root.get(k) for k in _COLLECTION_KEYS)), map_key_id="id"
        )
        stored = await load_json_list(self._store, SettingsKeys.INSTRUCTION_INJECTIONS) or []
        existing = load_records(
            InstructionInjectionDTO, stored, "instruction injection", self._warnings
        )

        incoming: list[Incoming[InstructionInjectionDTO]] = []
        for i, raw in enumerate(raw_items):
            prepared = prepare_injection(raw, i)
            if prepared is None:
                continue
            source_id, injection = prepared
            incoming.append(Incoming(record=injection, map_key=source_id or f"__inj_{i}"))

        outcome = self._engine.reconcile(INJECTION_SPEC, incoming, existing, mode, policy)
        await save_json(
            self._store, SettingsKeys.INSTRUCTION_INJECTIONS, dump_records(outcome.records)
        )

        active = await self._selection.apply(
            SettingsKeys.INSTRUCTION_INJECTIONS_ACTIVE_IDS_BY_ASSISTANT,
            INJECTION_SELECTION,
            settings_root,
            assistants.id_map,
            outcome.id_map,
            outcome.final_ids,
            mode,
        )
        global_ids = active.get(GLOBAL_ASSISTANT_KEY, [])
        if global_ids:
            await self._store.set(SettingsKeys.INSTRUCTION_INJECTIONS_ACTIVE_ID, global_ids[0])
            await save_json(self._store, SettingsKeys.INSTRUCTION_INJECTIONS_ACTIVE_IDS, global_ids)
        else:
            await self._store.delete(SettingsKeys.INSTRUCTION_INJECTIONS_ACTIVE_ID)
            await self._store.delete(SettingsKeys.INSTRUCTION_INJECTIONS_ACTIVE_IDS)

        if not raw_items:
            self._warnings("No mode injections found in settings.json.")
        logger.info(
            "instruction_injections_imported",
            count=outcome.imported_count,
            total=len(outcome.records),
            active_assistants=len(active),
        )
        return outcome.imported_count
