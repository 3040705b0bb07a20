"""Service layer for rikka_import.

This module exports the reconciliation engine and the per-phase reconcilers.
"""

from rikka_import.services.active_selection import ActiveSelectionRemapper
from rikka_import.services.assistants import AssistantImportContext, AssistantReconciler
from rikka_import.services.conversations import ConversationImportCounts, ConversationReconciler
from rikka_import.services.file_references import FileReferenceRewriter
from rikka_import.services.injections import InjectionReconciler
from rikka_import.services.message_tree import BuiltConversation, build_message_tree
from rikka_import.services.providers import ProviderImportContext, ProviderReconciler
from rikka_import.services.reconcile import (
    EntitySpec,
    IdStrategy,
    MergeConflictPolicy,
    ReconciliationEngine,
    RestoreMode,
)
from rikka_import.services.warnings import ImportWarnings
from rikka_import.services.world_books import WorldBookReconciler

__all__ = [
    "ActiveSelectionRemapper",
    "AssistantImportContext",
    "AssistantReconciler",
    "BuiltConversation",
    "ConversationImportCounts",
    "ConversationReconciler",
    "EntitySpec",
    "FileReferenceRewriter",
    "IdStrategy",
    "ImportWarnings",
    "InjectionReconciler",
    "MergeConflictPolicy",
    "ProviderImportContext",
    "ProviderReconciler",
    "ReconciliationEngine",
    "RestoreMode",
    "WorldBookReconciler",
    "build_message_tree",
]
