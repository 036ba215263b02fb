from datetime import datetime
from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: int
    conversation_id: int
    sender_id: str
    content: str
    sent_at: datetime
    # read state: null until the other participant marks the conversation read
    read_at: Optional[datetime]
    is_private: bool
    previous_message_id: Optional[int]
