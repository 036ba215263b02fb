from datetime import datetime
from typing import Optional, TypedDict


class NotificationDocument(TypedDict, total=False):
    _id: int
    user_id: str
    message: str
    is_read: bool
    created_at: datetime
    related_entity_type: Optional[str]
    related_entity_id: Optional[int]
