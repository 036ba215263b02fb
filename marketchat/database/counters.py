from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument


# ids are stored as BSON int64
MAX_ID = 2**63 - 1


async def next_id(db: AsyncIOMotorDatabase, sequence: str) -> int:
    """Allocate the next integer id of ``sequence`` with an atomic ``$inc``."""
    doc = await db["counters"].find_one_and_update(
        {"_id": sequence},
        {"$inc": {"value": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(doc["value"])
