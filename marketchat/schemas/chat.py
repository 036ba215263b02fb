from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageOut(CamelModel):

    id: int
    conversation_id: int
    sender_user_id: str
    sender_username: Optional[str] = None
    content: str
    sent_at: datetime
    read_at: Optional[datetime] = None
    is_private: bool = False

    @classmethod
    def from_document(cls, doc: Dict[str, Any], sender_username: Optional[str] = None) -> "MessageOut":
        return cls(
            id=doc["_id"],
            conversation_id=doc["conversation_id"],
            sender_user_id=doc["sender_id"],
            sender_username=sender_username,
            content=doc["content"],
            sent_at=doc["sent_at"],
            read_at=doc.get("read_at"),
            is_private=doc.get("is_private", False),
        )


class ConversationSummary(CamelModel):

    id: int
    buyer_user_id: str
    buyer_username: Optional[str] = None
    seller_user_id: str
    seller_username: Optional[str] = None
    store_id: int
    store_name: Optional[str] = None
    order_id: Optional[int] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    created_at: datetime
    last_message: Optional[MessageOut] = None
    unread_messages_count: int = 0


class FindOrCreateRequest(CamelModel):

    target_user_id: str = Field(min_length=1)
    store_id: int
    order_id: Optional[int] = None
    product_id: Optional[int] = None


class SendMessageRequest(CamelModel):

    content: str
    is_private: bool = False


class NotificationOut(CamelModel):

    id: int
    message: str
    is_read: bool
    created_at: datetime
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[int] = None


class DeviceRegisterRequest(CamelModel):

    platform: Literal["fcm", "webpush"]
    token: str = Field(min_length=1)
