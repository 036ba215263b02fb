from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketchat.database.counters import next_id
from marketchat.models.notification import NotificationDocument


class NotificationRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db["notifications"]

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])

    async def create(
        self,
        user_id: str,
        message: str,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[int] = None,
    ) -> NotificationDocument:
        doc: NotificationDocument = {
            "_id": await next_id(self._db, "notifications"),
            "user_id": user_id,
            "message": message,
            "is_read": False,
            "created_at": datetime.now(timezone.utc),
            "related_entity_type": related_entity_type,
            "related_entity_id": related_entity_id,
        }
        await self.collection.insert_one(doc)
        return doc

    async def list_for_user(self, user_id: str, only_unread: bool, skip: int, limit: int) -> List[NotificationDocument]:
        query: Dict[str, Any] = {"user_id": user_id}
        if only_unread:
            query["is_read"] = False
        cursor = self.collection.find(query).sort([("created_at", DESCENDING), ("_id", DESCENDING)]).skip(skip).limit(limit)
        return await cursor.to_list(length=limit)

    async def mark_read(self, notification_id: int, user_id: str) -> bool:
        result = await self.collection.update_one(
            {"_id": notification_id, "user_id": user_id},
            {"$set": {"is_read": True}},
        )
        return bool(result.matched_count)
