from typing import List

from fastapi import APIRouter, Depends, Path, Query, Response, status

from marketchat.database.counters import MAX_ID
from marketchat.models.identity import Identity
from marketchat.schemas.chat import NotificationOut
from marketchat.services.notification_service import NotificationService
from marketchat.services.validation import MAX_PAGE
from marketchat.utils.dependencies import get_current_identity, get_notification_service


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    only_unread: bool = Query(True, alias="onlyUnread"),
    page: int = Query(1, le=MAX_PAGE),
    page_size: int = Query(10, alias="pageSize"),
    identity: Identity = Depends(get_current_identity),
    service: NotificationService = Depends(get_notification_service),
):
    return await service.list_for_user(identity, only_unread=only_unread, page=page, page_size=page_size)


@router.post("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_notification_read(notification_id: int = Path(le=MAX_ID), identity: Identity = Depends(get_current_identity), service: NotificationService = Depends(get_notification_service)):
    await service.mark_read(identity, notification_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
