"""MongoDB infrastructure for rikka_import."""

from rikka_import.infra.mongo.client import MongoClient
from rikka_import.infra.mongo.conversation_store import MongoConversationStore

__all__ = ["MongoClient", "MongoConversationStore"]
