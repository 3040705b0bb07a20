"""In-memory store implementations for testing.

Both stores take their backing containers from the custom config dict, so
a test can keep a handle on the data across several importer runs.
"""

from typing import Any, Self

from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.interfaces.settings_store import SettingsStoreInterface
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO


class InMemorySettingsStore(SettingsStoreInterface):
    """Dict-backed settings store."""

    config_class = None

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = {} if data is None else data
        self.closed = False

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        return cls(config.get("data"))

    async def get(self, key: str) -> str | None:
        return self.data.get(str(key))

    async def set(self, key: str, value: str) -> None:
        self.data[str(key)] = value

    async def delete(self, key: str) -> None:
        self.data.pop(str(key), None)

    async def close(self) -> None:
        self.closed = True


class InMemoryConversationStore(ConversationStoreInterface):
    """Conversation store keeping messages in insertion order.

    Duplicate message ids raise, mirroring the unique index of the real store.
    """

    config_class = None

    def __init__(
        self,
        conversations: dict[str, ConversationDTO] | None = None,
        messages: dict[str, ChatMessageDTO] | None = None,
    ) -> None:
        self.conversations: dict[str, ConversationDTO] = (
            {} if conversations is None else conversations
        )
        self.messages: dict[str, ChatMessageDTO] = {} if messages is None else messages
        self.closed = False

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        return cls(config.get("conversations"), config.get("messages"))

    async def clear_all(self) -> None:
        self.conversations.clear()
        self.messages.clear()

    async def get_all_conversations(self) -> list[ConversationDTO]:
        return list(self.conversations.values())

    async def get_conversation(self, conversation_id: str) -> ConversationDTO | None:
        return self.conversations.get(conversation_id)

    async def get_messages(self, conversation_id: str) -> list[ChatMessageDTO]:
        return [m for m in self.messages.values() if m.conversation_id == conversation_id]

    async def add_message(self, message: ChatMessageDTO) -> None:
        if message.id in self.messages:
            raise ValueError(f"duplicate message id {message.id}")
        self.messages[message.id] = message

    async def save_conversation(self, conversation: ConversationDTO) -> None:
        self.conversations[conversation.id] = conversation

    async def restore_conversation(
        self,
        conversation: ConversationDTO,
        messages: list[ChatMessageDTO],
    ) -> None:
        if conversation.id in self.conversations:
            raise ValueError(f"duplicate conversation id {conversation.id}")
        self.conversations[conversation.id] = conversation
        for message in messages:
            await self.add_message(message)

    async def close(self) -> None:
        self.closed = True
