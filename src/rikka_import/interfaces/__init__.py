"""Interface contracts for rikka_import.

This module exports all Protocol-based interfaces for dependency injection.
"""

from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.interfaces.row_source import RowSourceInterface
from rikka_import.interfaces.settings_store import (
    GLOBAL_ASSISTANT_KEY,
    SettingsKeys,
    SettingsStoreInterface,
)

__all__ = [
    "GLOBAL_ASSISTANT_KEY",
    "ConversationStoreInterface",
    "RowSourceInterface",
    "SettingsKeys",
    "SettingsStoreInterface",
]
