"""MongoDB conversation store for rikka_import.

Conversations and messages live in two collections. Each message document
carries a per-conversation ``position`` so that display order survives
round trips.
"""

from typing import Any, Self

from rikka_import.config import MongoSettings
from rikka_import.exceptions import StoreError
from rikka_import.infra.mongo.client import MongoClient
from rikka_import.interfaces.conversation_store import ConversationStoreInterface
from rikka_import.logging import get_logger
from rikka_import.models.conversation import ChatMessageDTO, ConversationDTO

__all__ = [
    "MongoConversationStore",
]

logger = get_logger(__name__)


class MongoConversationStore(ConversationStoreInterface):
    """MongoDB implementation of ConversationStoreInterface."""

    config_class = MongoSettings

    def __init__(self, client: MongoClient) -> None:
        """Initialize store with MongoDB client.

        Args:
            client: Connected MongoClient instance
        """
        self._client = client
        self._owns_client = False

    @classmethod
    async def from_config(cls, config: MongoSettings) -> Self:
        """Factory method for RikkaHubImporter instantiation.

        Creates a MongoClient, connects, creates indexes, and returns the store.

        Args:
            config: MongoDB settings

        Returns:
            Connected MongoConversationStore instance
        """
        client = MongoClient(config)
        await client.connect()
        try:
            await client.ensure_indexes()
        except StoreError:
            await client.disconnect()
            raise
        instance = cls(client)
        instance._owns_client = True
        return instance

    @classmethod
    async def from_dict(cls, config: dict[str, Any]) -> Self:
        """Factory method for custom config dict.

        Args:
            config: Dictionary with MongoDB settings

        Returns:
            Connected MongoConversationStore instance
        """
        settings = MongoSettings(**config)
        return await cls.from_config(settings)

    async def close(self) -> None:
        """Close owned resources."""
        if self._owns_client and self._client:
            await self._client.disconnect()

    async def clear_all(self) -> None:
        conversations = await self._client.conversations.delete_many({})
        messages = await self._client.messages.delete_many({})
        logger.info(
            "conversation_store_cleared",
            conversations=conversations.deleted_count,
            messages=messages.deleted_count,
        )

    async def get_all_conversations(self) -> list[ConversationDTO]:
        """Get all conversations, most recently updated first."""
        cursor = self._client.conversations.find().sort("updated_at", -1)
        return [self._doc_to_conversation(doc) async for doc in cursor]

    async def get_conversation(self, conversation_id: str) -> ConversationDTO | None:
        doc = await self._client.conversations.find_one({"id": conversation_id})
        return self._doc_to_conversation(doc) if doc else None

    async def get_messages(self, conversation_id: str) -> list[ChatMessageDTO]:
        cursor = self._client.messages.find({"conversation_id": conversation_id})
        cursor = cursor.sort("position", 1)
        return [self._doc_to_message(doc) async for doc in cursor]

    async def add_message(self, message: ChatMessageDTO) -> None:
        position = await self._client.messages.count_documents(
            {"conversation_id": message.conversation_id}
        )
        await self._client.messages.insert_one(self._message_to_doc(message, position))

    async def save_conversation(self, conversation: ConversationDTO) -> None:
        """Save or update conversation metadata."""
        await self._client.conversations.replace_one(
            {"id": conversation.id},
            self._conversation_to_doc(conversation),
            upsert=True,
        )

    async def restore_conversation(
        self,
        conversation: ConversationDTO,
        messages: list[ChatMessageDTO],
    ) -> None:
        await self.save_conversation(conversation)
        if messages:
            await self._client.messages.insert_many(
                [self._message_to_doc(m, i) for i, m in enumerate(messages)],
                ordered=True,
            )
        logger.debug(
            "conversation_restored",
            conversation_id=conversation.id,
            messages=len(messages),
        )

    # Document conversion helpers
    @staticmethod
    def _conversation_to_doc(conversation: ConversationDTO) -> dict[str, Any]:
        return conversation.model_dump()

    @staticmethod
    def _doc_to_conversation(doc: dict[str, Any]) -> ConversationDTO:
        return ConversationDTO(
            id=doc["id"],
            title=doc.get("title", ""),
            created_at=doc["created_at"],
            updated_at=doc["updated_at"],
            is_pinned=doc.get("is_pinned", False),
            assistant_id=doc.get("assistant_id"),
            truncate_index=doc.get("truncate_index", -1),
            version_selections=doc.get("version_selections", {}),
        )

    @staticmethod
    def _message_to_doc(message: ChatMessageDTO, position: int) -> dict[str, Any]:
        return {**message.model_dump(), "position": position}

    @staticmethod
    def _doc_to_message(doc: dict[str, Any]) -> ChatMessageDTO:
        return ChatMessageDTO(
            id=doc["id"],
            conversation_id=doc["conversation_id"],
            role=doc["role"],
            content=doc.get("content", ""),
            timestamp=doc["timestamp"],
            group_id=doc["group_id"],
            version=doc.get("version", 0),
            model_id=doc.get("model_id"),
            provider_id=doc.get("provider_id"),
            total_tokens=doc.get("total_tokens"),
        )
