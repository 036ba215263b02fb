from datetime import datetime, timezone
from typing import List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.database.counters import next_id
from marketchat.models.conversation import ConversationDocument, ConversationKey


class ConversationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["conversations"]

    async def ensure_indexes(self) -> None:
        # one thread per (buyer, seller, store, order, product); nulls compare equal
        await self.collection.create_index(
            [
                ("buyer_id", ASCENDING),
                ("seller_id", ASCENDING),
                ("store_id", ASCENDING),
                ("order_id", ASCENDING),
                ("product_id", ASCENDING),
            ],
            unique=True,
            name="conversation_key",
        )
        await self.collection.create_index([("buyer_id", ASCENDING)])
        await self.collection.create_index([("seller_id", ASCENDING)])
        await self.collection.create_index([("last_message_at", DESCENDING)])

    async def get(self, conversation_id: int) -> Optional[ConversationDocument]:
        return await self.collection.find_one({"_id": conversation_id})

    async def find_by_key(self, key: ConversationKey) -> Optional[ConversationDocument]:
        return await self.collection.find_one(key.as_query())

    async def insert(self, key: ConversationKey) -> ConversationDocument:
        """Insert a new conversation for ``key``.

        Raises ``pymongo.errors.DuplicateKeyError`` when a conversation with the
        same key already exists.
        """
        now = datetime.now(timezone.utc)
        doc: ConversationDocument = {
            "_id": await next_id(self._db, "conversations"),
            **key.as_query(),
            "created_at": now,
            "last_message_id": None,
            "last_message_at": now,
        }
        await self.collection.insert_one(doc)
        return doc

    async def update_on_new_message(self, conversation_id: int, message_id: int, sent_at: datetime) -> None:
        await self.collection.update_one(
            {"_id": conversation_id},
            {"$set": {"last_message_id": message_id, "last_message_at": sent_at}},
        )

    async def list_for_user(self, user_id: str) -> List[ConversationDocument]:
        query = {"$or": [{"buyer_id": user_id}, {"seller_id": user_id}]}
        sort = [("last_message_at", DESCENDING), ("_id", DESCENDING)]
        cursor = self.collection.find(query).sort(sort)
        return await cursor.to_list(length=None)

    async def list_ids_for_user(self, user_id: str) -> List[int]:
        query = {"$or": [{"buyer_id": user_id}, {"seller_id": user_id}]}
        cursor = self.collection.find(query, {"_id": 1})
        return [doc["_id"] for doc in await cursor.to_list(length=None)]
