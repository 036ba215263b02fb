from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.database.counters import next_id
from marketchat.models.message import MessageDocument


class MessageRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["messages"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index(
            [("conversation_id", ASCENDING), ("sent_at", ASCENDING), ("_id", ASCENDING)]
        )

    async def save_message(
        self,
        conversation_id: int,
        sender_id: str,
        content: str,
        is_private: bool = False,
    ) -> MessageDocument:
        doc: MessageDocument = {
            "_id": await next_id(self._db, "messages"),
            "conversation_id": conversation_id,
            "sender_id": sender_id,
            "content": content,
            "sent_at": datetime.now(timezone.utc),
            "read_at": None,
            "is_private": is_private,
            "previous_message_id": None,
        }
        await self.collection.insert_one(doc)
        return doc

    async def get(self, message_id: int) -> Optional[MessageDocument]:
        return await self.collection.find_one({"_id": message_id})

    async def get_messages_by_conversation(
        self,
        conversation_id: int,
        viewer_id: str,
        include_private: bool,
        skip: int = 0,
        limit: int = 30,
    ) -> List[MessageDocument]:
        """Return one page of messages, newest page first, oldest message first within it."""
        query: Dict[str, Any] = {"conversation_id": conversation_id}
        if not include_private:
            query["$or"] = [{"is_private": False}, {"sender_id": viewer_id}]
        sort = [("sent_at", DESCENDING), ("_id", DESCENDING)]
        cursor = self.collection.find(query).sort(sort).skip(skip).limit(limit)
        items = await cursor.to_list(length=limit)
        return list(reversed(items))

    async def mark_read(self, conversation_id: int, reader_id: str) -> int:
        result = await self.collection.update_many(
            {"conversation_id": conversation_id, "sender_id": {"$ne": reader_id}, "read_at": None},
            {"$set": {"read_at": datetime.now(timezone.utc)}},
        )
        return result.modified_count or 0

    async def count_unread(self, conversation_id: int, reader_id: str) -> int:
        return await self.collection.count_documents(
            {"conversation_id": conversation_id, "sender_id": {"$ne": reader_id}, "read_at": None}
        )
