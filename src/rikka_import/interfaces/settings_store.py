"""Key-value settings store interface for rikka_import.

Settings are persisted as JSON-encoded strings under fixed keys.
"""

from enum import StrEnum
from typing import ClassVar, Protocol, runtime_checkable

__all__ = [
    "GLOBAL_ASSISTANT_KEY",
    "SettingsKeys",
    "SettingsStoreInterface",
]

# Active-selection bucket for selections that are not tied to one assistant
GLOBAL_ASSISTANT_KEY = "__global__"


class SettingsKeys(StrEnum):
    """Keys the importer reads and writes."""

    PROVIDER_CONFIGS = "provider_configs_v1"
    PROVIDERS_ORDER = "providers_order_v1"
    ASSISTANTS = "assistants_v1"
    INSTRUCTION_INJECTIONS = "instruction_injections_v1"
    INSTRUCTION_INJECTIONS_ACTIVE_ID = "instruction_injections_active_id_v1"
    INSTRUCTION_INJECTIONS_ACTIVE_IDS = "instruction_injections_active_ids_v1"
    INSTRUCTION_INJECTIONS_ACTIVE_IDS_BY_ASSISTANT = (
        "instruction_injections_active_ids_by_assistant_v1"
    )
    WORLD_BOOKS = "world_books_v1"
    WORLD_BOOKS_ACTIVE_IDS_BY_ASSISTANT = "world_books_active_ids_by_assistant_v1"


@runtime_checkable
class SettingsStoreInterface(Protocol):
    """Contract for the persistent key-value settings store."""

    config_class: ClassVar[type | None] = None

    async def get(self, key: str) -> str | None:
        """Read a stored blob.

        Args:
            key: Settings key

        Returns:
            The stored string, or None if the key is absent
        """
        ...

    async def set(self, key: str, value: str) -> None:
        """Write a blob, replacing any previous value."""
        ...

    async def delete(self, key: str) -> None:
        """Remove a key; absent keys are ignored."""
        ...

    async def close(self) -> None:
        ...
