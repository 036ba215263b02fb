from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: int
    buyer_id: str
    seller_id: str
    store_id: int
    # null when the conversation is about the store in general
    order_id: Optional[int]
    product_id: Optional[int]
    created_at: datetime
    last_message_id: Optional[int]
    last_message_at: datetime


@dataclass(frozen=True)
class ConversationKey:
    """Identity of a conversation thread.

    ``None`` for ``order_id`` / ``product_id`` means "absent" and is stored as
    an explicit null, so it never collides with a real (positive) id.
    """

    buyer_id: str
    seller_id: str
    store_id: int
    order_id: Optional[int] = None
    product_id: Optional[int] = None

    def as_query(self) -> Dict[str, Any]:
        return {
            "buyer_id": self.buyer_id,
            "seller_id": self.seller_id,
            "store_id": self.store_id,
            "order_id": self.order_id,
            "product_id": self.product_id,
        }

    @property
    def participants(self) -> tuple:
        return (self.buyer_id, self.seller_id)
