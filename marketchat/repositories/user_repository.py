from typing import Dict, Iterable, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.models.user import UserDocument


class UserRepository:

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._collection = db.get_collection("users")

    async def get_user_by_id(self, user_id: str) -> Optional[UserDocument]:

        return await self._collection.find_one({"_id": user_id})

    async def get_usernames(self, user_ids: Iterable[str]) -> Dict[str, str]:

        ids = list(set(user_ids))
        if not ids:
            return {}
        cursor = self._collection.find({"_id": {"$in": ids}}, {"username": 1})
        return {doc["_id"]: doc.get("username") for doc in await cursor.to_list(length=len(ids))}
