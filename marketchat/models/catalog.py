from typing import TypedDict


class StoreDocument(TypedDict, total=False):
    _id: int
    name: str


class ProductDocument(TypedDict, total=False):
    _id: int
    store_id: int
    name: str


class OrderDocument(TypedDict, total=False):
    _id: int
    store_id: int
    buyer_id: str
