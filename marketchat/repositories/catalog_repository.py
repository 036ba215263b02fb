from typing import Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from marketchat.models.catalog import OrderDocument, ProductDocument, StoreDocument


class CatalogRepository:
    """Read-only lookups into the store/product/order collections owned by the catalog."""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self._db = db

    async def get_store(self, store_id: int) -> Optional[StoreDocument]:
        return await self._db["stores"].find_one({"_id": store_id})

    async def get_product(self, product_id: int) -> Optional[ProductDocument]:
        return await self._db["products"].find_one({"_id": product_id})

    async def get_order(self, order_id: int) -> Optional[OrderDocument]:
        return await self._db["orders"].find_one({"_id": order_id})
