"""Conversation store interface for rikka_import.

This module defines the Protocol for the destination of imported
conversations and their messages.
"""

from typing import ClassVar, Protocol, runtime_checkable

from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO

__all__ = [
    "ConversationStoreInterface",
]


@runtime_checkable
class ConversationStoreInterface(Protocol):
    """Contract for conversation and message persistence.

    Message ids are unique across the whole store, not only within one
    conversation.
    """

    config_class: ClassVar[type | None] = None

    async def clear_all(self) -> None:
        """Delete every conversation and message."""
        ...

    async def get_all_conversations(self) -> list[ConversationDTO]:
        ...

    async def get_conversation(self, conversation_id: str) -> ConversationDTO | None:
        """Get a conversation by ID.

        Args:
            conversation_id: Conversation ID to retrieve

        Returns:
            ConversationDTO if found, None otherwise
        """
        ...

    async def get_messages(self, conversation_id: str) -> list[ChatMessageDTO]:
        """Get all messages of a conversation, every version included."""
        ...

    async def add_message(self, message: ChatMessageDTO) -> None:
        """Append a message to its (existing) conversation."""
        ...

    async def save_conversation(self, conversation: ConversationDTO) -> None:
        """Insert or replace conversation metadata."""
        ...

    async def restore_conversation(
        self,
        conversation: ConversationDTO,
        messages: list[ChatMessageDTO],
    ) -> None:
        """Store a new conversation together with its messages.

        Args:
            conversation: Conversation metadata
            messages: Messages in display order
        """
        ...

    async def close(self) -> None:
        ...
