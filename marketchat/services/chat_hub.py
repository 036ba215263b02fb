import json
import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket

from marketchat.models.identity import Identity
from marketchat.schemas.chat import MessageOut
from marketchat.services.chat_service import ChatService
from marketchat.utils.websocket_manager import ConnectionManager, room_name


logger = logging.getLogger(__name__)


def event(event_type: str, **fields: Any) -> str:
    body: Dict[str, Any] = {"type": event_type}
    for name, value in fields.items():
        body[name] = value.model_dump(mode="json", by_alias=True) if isinstance(value, MessageOut) else value
    return json.dumps(body)


class ChatHub:
    """Real-time side of the chat: room subscriptions and message fan-out."""

    def __init__(self, service: ChatService, manager: ConnectionManager) -> None:
        self._service = service
        self._manager = manager

    async def on_connect(self, identity: Identity, websocket: WebSocket) -> str:
        connection_id = uuid.uuid4().hex
        await self._manager.connect(connection_id, identity, websocket)
        try:
            for conversation_id in await self._service.conversation_ids_for_user(identity.user_id):
                await self._manager.join(connection_id, conversation_id)
        except Exception:
            await self._manager.disconnect(connection_id)
            raise
        logger.info(
            "User %s connection %s subscribed to %d rooms",
            identity.user_id, connection_id, len(self._manager.rooms_for(connection_id)),
        )
        return connection_id

    async def on_disconnect(self, connection_id: str) -> None:
        await self._manager.disconnect(connection_id)

    async def join_conversation(self, connection_id: str, identity: Identity, conversation_id: int) -> bool:
        if not await self._service.can_access(identity, conversation_id):
            # refusals are not echoed so room ids cannot be discovered
            logger.warning("User %s refused join of %s", identity.user_id, room_name(conversation_id))
            return False
        if not await self._manager.join(connection_id, conversation_id):
            logger.info("Connection %s is gone; not joining %s", connection_id, room_name(conversation_id))
            return False
        await self._manager.send_personal_message(connection_id, event("JoinedConversation", conversationId=conversation_id))
        logger.info("User %s connection %s joined %s", identity.user_id, connection_id, room_name(conversation_id))
        return True

    async def leave_conversation(self, connection_id: str, conversation_id: int) -> None:
        await self._manager.leave(connection_id, conversation_id)

    async def send_message(
        self,
        identity: Identity,
        conversation_id: int,
        content: str,
        is_private: bool = False,
        connection_id: Optional[str] = None,
    ) -> MessageOut:
        message = await self._service.save_message(identity, conversation_id, content, is_private)
        await self._manager.broadcast(
            conversation_id,
            event("ReceiveMessage", data=message),
            private_sender=identity.user_id if is_private else None,
        )
        if connection_id is not None:
            await self._manager.send_personal_message(connection_id, event("MessageSent", data=message))
        return message
