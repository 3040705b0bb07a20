"""Public DTO models for rikka_import.

This module exports all public data transfer objects.
"""

from rikka_import.models.assistant import AssistantDTO, ModelRef
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO
from rikka_import.models.injection import InstructionInjectionDTO
from rikka_import.models.provider import ApiKeyConfig, ProviderConfig, ProviderKind
from rikka_import.models.world_book import (
    InjectionPosition,
    InjectionRole,
    WorldBookDTO,
    WorldBookEntryDTO,
)

__all__ = [
    "ApiKeyConfig",
    "AssistantDTO",
    "ChatMessageDTO",
    "ConversationDTO",
    "InjectionPosition",
    "InjectionRole",
    "InstructionInjectionDTO",
    "ModelRef",
    "ProviderConfig",
    "ProviderKind",
    "WorldBookDTO",
    "WorldBookEntryDTO",
]
