"""MongoDB client for rikka_import.

Owns the Motor client and the two collections of the conversation store:
``conversations`` (one document per conversation) and ``messages`` (one
document per message variant, ordered by ``position``).
"""

from typing import TYPE_CHECKING, Any

from rikka_import.config import MongoSettings
from rikka_import.exceptions import StoreError
from rikka_import.logging import get_logger
from rikka_import.utils.lazy_import import lazy_import

if TYPE_CHECKING:
    from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

__all__ = [
    "CONVERSATIONS",
    "MESSAGES",
    "MongoClient",
]

logger = get_logger(__name__)

get_async_motor = lazy_import("motor.motor_asyncio", "AsyncIOMotorClient")
get_pymongo_error = lazy_import("pymongo.errors", "PyMongoError")

CONVERSATIONS = "conversations"
MESSAGES = "messages"


class MongoClient:
    """Async MongoDB connection for the conversation store.

    Collection names get ``settings.collection_prefix`` prepended, so several
    importers can share a database.

    Example:
        async with MongoClient(settings) as client:
            await client.ensure_indexes()
            doc = await client.conversations.find_one({"id": conversation_id})
    """

    def __init__(self, settings: MongoSettings) -> None:
        self._settings = settings
        self._client: Any = None
        self._db: Any = None
        self._indexes_ready = False

    async def connect(self) -> None:
        """Open the client and ping the server.

        Raises:
            StoreError: If the server does not answer within the selection timeout
        """
        if self._client is not None:
            return
        AsyncIOMotorClient = get_async_motor()  # noqa: N806

        client = AsyncIOMotorClient(
            self._settings.uri.get_secret_value(),
            tz_aware=True,
            serverSelectionTimeoutMS=self._settings.server_selection_timeout_ms,
        )
        try:
            await client.admin.command("ping")
        except get_pymongo_error() as e:
            client.close()
            raise StoreError(f"Unable to connect to MongoDB: {e}") from e

        self._client = client
        self._db = client[self._settings.database]
        logger.info(
            "connected_to_mongodb",
            database=self._settings.database,
            collection_prefix=self._settings.collection_prefix,
        )

    async def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.close()
        self._client = None
        self._db = None
        self._indexes_ready = False
        logger.info("disconnected_from_mongodb")

    @property
    def db(self) -> "AsyncIOMotorDatabase[dict[str, Any]]":
        """The connected database.

        Raises:
            StoreError: If not connected
        """
        if self._db is None:
            raise StoreError("MongoClient not connected. Call connect() first.")
        return self._db

    def collection(self, name: str) -> "AsyncIOMotorCollection[dict[str, Any]]":
        return self.db[f"{self._settings.collection_prefix}{name}"]

    @property
    def conversations(self) -> "AsyncIOMotorCollection[dict[str, Any]]":
        return self.collection(CONVERSATIONS)

    @property
    def messages(self) -> "AsyncIOMotorCollection[dict[str, Any]]":
        return self.collection(MESSAGES)

    async def ensure_indexes(self) -> None:
        """Create the store's indexes once per connection.

        Message ids are unique store-wide, not per conversation.
        """
        if self._indexes_ready:
            return
        try:
            await self.conversations.create_index("id", unique=True)
            await self.conversations.create_index("updated_at")
            await self.messages.create_index("id", unique=True)
            await self.messages.create_index([("conversation_id", 1), ("position", 1)])
        except get_pymongo_error() as e:
            raise StoreError(f"Unable to create MongoDB indexes: {e}") from e
        self._indexes_ready = True
        logger.debug("mongodb_indexes_ready")

    async def __aenter__(self) -> "MongoClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
