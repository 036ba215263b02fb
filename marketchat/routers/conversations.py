from typing import List

from fastapi import APIRouter, Depends, Path, Query, Response, status

from marketchat.database.counters import MAX_ID
from marketchat.models.identity import Identity
from marketchat.schemas.chat import ConversationSummary, FindOrCreateRequest, MessageOut, SendMessageRequest
from marketchat.services.chat_hub import ChatHub
from marketchat.services.chat_service import ChatService
from marketchat.services.validation import MAX_PAGE
from marketchat.utils.dependencies import get_chat_service, get_current_identity
from marketchat.utils.websocket_manager import manager


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(identity: Identity = Depends(get_current_identity), service: ChatService = Depends(get_chat_service)):
    return await service.list_conversations(identity)


@router.post("/find-or-create", response_model=ConversationSummary)
async def find_or_create(body: FindOrCreateRequest, response: Response, identity: Identity = Depends(get_current_identity), service: ChatService = Depends(get_chat_service)):
    summary, created = await service.find_or_create(
        identity, body.target_user_id, body.store_id, order_id=body.order_id, product_id=body.product_id,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return summary


@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(
    conversation_id: int = Path(le=MAX_ID),
    page: int = Query(1, le=MAX_PAGE),
    page_size: int = Query(30, alias="pageSize"),
    identity: Identity = Depends(get_current_identity),
    service: ChatService = Depends(get_chat_service),
):
    return await service.list_messages(identity, conversation_id, page=page, page_size=page_size)


@router.post("/{conversation_id}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(body: SendMessageRequest, conversation_id: int = Path(le=MAX_ID), identity: Identity = Depends(get_current_identity), service: ChatService = Depends(get_chat_service)):
    hub = ChatHub(service, manager)
    return await hub.send_message(identity, conversation_id, body.content, body.is_private)


@router.post("/{conversation_id}/markasread", status_code=status.HTTP_204_NO_CONTENT)
async def mark_as_read(conversation_id: int = Path(le=MAX_ID), identity: Identity = Depends(get_current_identity), service: ChatService = Depends(get_chat_service)):
    await service.mark_read(identity, conversation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
