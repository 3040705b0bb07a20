"""Reading and writing JSON collections in the settings store."""

import json
from collections.abc import Callable, Iterable, Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from rikka_import.interfaces.settings_store import SettingsStoreInterface
from rikka_import.logging import get_logger

__all__ = [
    "dump_records",
    "load_json_list",
    "load_json_map",
    "load_records",
    "save_json",
]

logger = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def _decode(blob: str | None, key: str) -> Any:
    if not blob or not blob.strip():
        return None
    try:
        return json.loads(blob)
    except json.JSONDecodeError:
        logger.warning("stored_value_unreadable", key=key)
        return None


async def load_json_map(store: SettingsStoreInterface, key: str) -> dict[str, Any]:
    """Stored JSON object, or an empty dict when absent or malformed."""
    decoded = _decode(await store.get(key), key)
    if not isinstance(decoded, dict):
        return {}
    return {str(k): v for k, v in decoded.items()}


async def load_json_list(store: SettingsStoreInterface, key: str) -> list[Any] | None:
    """Stored JSON array, or None when absent or malformed."""
    decoded = _decode(await store.get(key), key)
    return decoded if isinstance(decoded, list) else None


async def save_json(store: SettingsStoreInterface, key: str, value: Any) -> None:
    await store.set(key, json.dumps(value, ensure_ascii=False))


def load_records(
    model: type[M],
    raw: Iterable[Any] | Mapping[str, Any],
    kind: str,
    warn: Callable[[str], None],
) -> list[M]:
    """Validate stored records, skipping (and reporting) the unusable ones.

    Args:
        model: DTO class to validate against
        raw: A list of records, or a key -> record map whose key is used
            as the id
        kind: Entity name for warnings
        warn: Warning sink

    Returns:
        The valid records in stored order
    """
    if isinstance(raw, Mapping):
        items = [
            {**value, "id": key} for key, value in raw.items() if isinstance(value, Mapping)
        ]
    else:
        items = [item for item in raw if isinstance(item, Mapping)]
    records: list[M] = []
    for item in items:
        try:
            records.append(model.model_validate(item))
        except ValidationError as e:
            warn(f"Skipped unreadable local {kind} \"{item.get('id', '')}\".")
            logger.debug("stored_record_invalid", kind=kind, error=str(e))
    return records


def dump_records(records: Iterable[BaseModel]) -> list[dict[str, Any]]:
    return [record.model_dump(mode="json") for record in records]
