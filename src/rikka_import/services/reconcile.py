"""Identity and conflict reconciliation shared by the entity importers.

Providers, assistants, instruction injections and world books are all
imported the same way: incoming records are matched against the local
collection, merged or appended, and every foreign id is mapped to the id
the record ended up under. Each entity kind contributes only an
``EntitySpec``: its ordered same-item predicates, its keep-local merge and
how ids are allocated.
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

from pydantic import BaseModel

from rikka_import.domain.id_map import IdMap
from rikka_import.logging import get_logger
from rikka_import.utils.fields import is_empty
from rikka_import.utils.naming import new_uuid, normalize_name, unique_display_name, unique_key

__all__ = [
    "EntitySpec",
    "IdStrategy",
    "Incoming",
    "MergeConflictPolicy",
    "ReconcileOutcome",
    "ReconciliationEngine",
    "RestoreMode",
    "match_exact",
    "match_id",
    "match_normalized",
    "merge_keep_local",
]

logger = get_logger(__name__)


class RestoreMode(StrEnum):
    """How an import treats the local data it finds."""

    OVERWRITE = "overwrite"
    MERGE = "merge"


class MergeConflictPolicy(StrEnum):
    """What a merge import does with records that look like local ones."""

    MERGE_SAME_ITEM = "merge_same_item"
    DUPLICATE_ON_CONFLICT = "duplicate_on_conflict"


class IdStrategy(StrEnum):
    """UUID ids, or name-derived keys that double as the display name."""

    UUID = "uuid"
    NAME_KEY = "name_key"


M = TypeVar("M", bound=BaseModel)

SameItemPredicate = Callable[[BaseModel, BaseModel], bool]


@dataclass(frozen=True)
class Incoming(Generic[M]):
    """A normalized incoming record.

    Attributes:
        record: Record in local shape; its id is the proposed local id
        map_key: Key under which the final id is published in the id map,
            the foreign id or a positional placeholder when it had none
    """

    record: M
    map_key: str


@dataclass(frozen=True)
class EntitySpec(Generic[M]):
    kind: str
    same_item: Sequence[SameItemPredicate]
    merge: Callable[[M, M], M]
    id_strategy: IdStrategy = IdStrategy.UUID
    name_field: str | None = None


@dataclass
class ReconcileOutcome(Generic[M]):
    records: list[M]
    id_map: IdMap
    imported_count: int = 0
    final_ids: frozenset[str] = field(default_factory=frozenset)


def match_id(local: BaseModel, incoming: BaseModel) -> bool:
    local_id = str(getattr(local, "id", "") or "").strip()
    return bool(local_id) and local_id == str(getattr(incoming, "id", "") or "").strip()


def match_normalized(field_name: str) -> SameItemPredicate:
    """Predicate comparing a string field trimmed and case-folded."""

    def _match(local: BaseModel, incoming: BaseModel) -> bool:
        left = normalize_name(str(getattr(local, field_name, "") or ""))
        return bool(left) and left == normalize_name(str(getattr(incoming, field_name, "") or ""))

    return _match


def match_exact(field_name: str) -> SameItemPredicate:
    """Predicate comparing a non-blank string field verbatim."""

    def _match(local: BaseModel, incoming: BaseModel) -> bool:
        left = getattr(local, field_name, None)
        return bool(left and str(left).strip()) and left == getattr(incoming, field_name, None)

    return _match


def merge_keep_local(
    local: M,
    incoming: M,
    union_fields: Iterable[str] = (),
    skip_fields: Iterable[str] = ("id", "name"),
) -> M:
    """Fill empty local fields from ``incoming``; non-empty local values win.

    Args:
        local: Stored record
        incoming: Imported record
        union_fields: List fields whose items are unioned, local order first
        skip_fields: Fields never touched

    Returns:
        The merged record (``local`` itself when nothing changed)
    """
    union = set(union_fields)
    skipped = set(skip_fields)
    local_data = local.model_dump()
    updates = {}
    for key, value in incoming.model_dump().items():
        if key in skipped:
            continue
        current = local_data.get(key)
        if key in union and isinstance(current, list) and isinstance(value, list):
            merged = list(current)
            merged.extend(item for item in value if item not in current)
            if len(merged) != len(current):
                updates[key] = merged
            continue
        if is_empty(current) and not is_empty(value):
            updates[key] = value
    if not updates:
        return local
    return type(local).model_validate({**local_data, **updates})


class ReconciliationEngine:
    """Applies a restore mode and conflict policy to one entity collection."""

    def reconcile(
        self,
        spec: EntitySpec[M],
        incoming: Sequence[Incoming[M]],
        existing: Sequence[M],
        mode: RestoreMode,
        policy: MergeConflictPolicy,
    ) -> ReconcileOutcome[M]:
        """Reconcile ``incoming`` against ``existing``.

        Args:
            spec: Entity behaviour
            incoming: Normalized incoming records, in import order
            existing: Current local collection (ignored under overwrite)
            mode: Restore mode
            policy: Conflict policy, only meaningful under merge

        Returns:
            The resulting collection, the foreign -> local id map and the
            number of incoming records merged or added
        """
        records: list[M] = [] if mode is RestoreMode.OVERWRITE else list(existing)
        used_ids = {str(getattr(r, "id", "")) for r in records}
        used_names = {self._name_of(spec, r) for r in records} - {""}
        mapping: dict[str, str] = {}
        imported = 0
        merging = mode is RestoreMode.MERGE
        duplicating = merging and policy is MergeConflictPolicy.DUPLICATE_ON_CONFLICT

        for item in incoming:
            match_index = self._find_match(spec, records, item.record) if merging else None
            if match_index is not None and not duplicating:
                merged = spec.merge(records[match_index], item.record)
                records[match_index] = merged
                mapping[item.map_key] = merged.id
                imported += 1
                continue

            placed = self._place(
                spec,
                item.record,
                used_ids,
                used_names,
                duplicating=duplicating,
                item_conflict=match_index is not None,
            )
            records.append(placed)
            used_ids.add(placed.id)
            name = self._name_of(spec, placed)
            if name:
                used_names.add(name)
            mapping[item.map_key] = placed.id
            imported += 1

        logger.debug(
            "entities_reconciled",
            kind=spec.kind,
            mode=mode.value,
            policy=policy.value,
            imported=imported,
            total=len(records),
        )
        return ReconcileOutcome(
            records=records,
            id_map=IdMap.from_mapping(mapping),
            imported_count=imported,
            final_ids=frozenset(r.id for r in records),
        )

    @staticmethod
    def _name_of(spec: EntitySpec, record: BaseModel) -> str:
        if not spec.name_field:
            return ""
        return str(getattr(record, spec.name_field, "") or "").strip()

    @staticmethod
    def _find_match(spec: EntitySpec[M], records: Sequence[M], record: M) -> int | None:
        for predicate in spec.same_item:
            for index, local in enumerate(records):
                if predicate(local, record):
                    return index
        return None

    def _place(
        self,
        spec: EntitySpec[M],
        record: M,
        used_ids: set[str],
        used_names: set[str],
        *,
        duplicating: bool,
        item_conflict: bool,
    ) -> M:
        proposed = str(getattr(record, "id", "") or "").strip()
        if spec.id_strategy is IdStrategy.NAME_KEY:
            force = duplicating and (item_conflict or proposed in used_ids)
            key = unique_key(proposed, used_ids, force_suffix=force)
            keyed = {"id": key}
            if spec.name_field:
                keyed[spec.name_field] = key
            return record.model_copy(update=keyed)

        update: dict[str, str] = {}
        if not proposed or proposed in used_ids:
            update["id"] = new_uuid(used_ids)
        elif proposed != getattr(record, "id", None):
            update["id"] = proposed
        if duplicating and spec.name_field:
            name = self._name_of(spec, record)
            if name in used_names:
                update[spec.name_field] = unique_display_name(name, used_names, force_suffix=True)
        return record.model_copy(update=update) if update else record
