import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pymongo.errors import PyMongoError

from marketchat.database.counters import MAX_ID
from marketchat.errors import Forbidden, InvalidArgument, NotFound, Unauthenticated, Unavailable
from marketchat.models.identity import Identity
from marketchat.services.chat_hub import ChatHub, event
from marketchat.services.chat_service import ChatService
from marketchat.utils.dependencies import get_chat_service
from marketchat.utils.security import identity_from_token
from marketchat.utils.websocket_manager import manager


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


async def _send_error(websocket: WebSocket, code: str, detail: str) -> None:
    await websocket.send_text(event("Error", code=code, detail=detail))


async def _handle_frame(hub: ChatHub, websocket: WebSocket, connection_id: str, identity: Identity, data: str) -> None:
    try:
        msg: Dict[str, Any] = json.loads(data)
    except ValueError:
        await _send_error(websocket, InvalidArgument.code, "Frame is not valid JSON")
        return
    if not isinstance(msg, dict):
        await _send_error(websocket, InvalidArgument.code, "Frame must be a JSON object")
        return

    kind = msg.get("type")
    conversation_id = msg.get("conversationId")
    if isinstance(conversation_id, bool) or not isinstance(conversation_id, int):
        logger.warning("User %s sent %s without a conversationId", identity.user_id, kind)
        await _send_error(websocket, InvalidArgument.code, "conversationId must be an integer")
        return
    if conversation_id > MAX_ID:
        await _send_error(websocket, InvalidArgument.code, f"conversationId must not exceed {MAX_ID}")
        return

    if kind == "JoinConversation":
        await hub.join_conversation(connection_id, identity, conversation_id)
    elif kind == "LeaveConversation":
        await hub.leave_conversation(connection_id, conversation_id)
    elif kind == "SendMessage":
        try:
            await hub.send_message(
                identity,
                conversation_id,
                msg.get("content") or "",
                bool(msg.get("isPrivate", False)),
                connection_id=connection_id,
            )
        except InvalidArgument as exc:
            await _send_error(websocket, exc.code, exc.detail)
        except (Forbidden, NotFound) as exc:
            logger.warning("User %s refused send to conversation %s: %s", identity.user_id, conversation_id, exc.detail)
    else:
        await _send_error(websocket, InvalidArgument.code, f"Unknown frame type {kind!r}")


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, service: ChatService = Depends(get_chat_service)):
    # bearer token travels as ?token=... since browsers cannot set WS headers
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4401)
        return
    try:
        identity = identity_from_token(token)
    except Unauthenticated as exc:
        logger.warning("Rejected WebSocket connection: %s", exc.detail)
        await websocket.close(code=4401)
        return

    hub = ChatHub(service, manager)
    try:
        connection_id = await hub.on_connect(identity, websocket)
    except PyMongoError:
        logger.exception("Could not load conversations for %s", identity.user_id)
        await websocket.close(code=1011)
        return

    try:
        while True:
            data = await websocket.receive_text()
            try:
                await _handle_frame(hub, websocket, connection_id, identity, data)
            except PyMongoError:
                logger.exception("Storage failure handling frame from %s", identity.user_id)
                await _send_error(websocket, Unavailable.code, "Storage is unavailable")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.on_disconnect(connection_id)
