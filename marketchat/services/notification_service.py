import logging
from typing import Iterable, List

from marketchat.errors import NotFound
from marketchat.models.identity import Identity
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.notification_repository import NotificationRepository
from marketchat.schemas.chat import MessageOut, NotificationOut
from marketchat.services.validation import check_id, clamp_page
from marketchat.utils.notifications import get_push


logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 50


def preview(content: str) -> str:
    if len(content) <= PREVIEW_LENGTH:
        return content
    return content[:PREVIEW_LENGTH] + "..."


class NotificationService:
    """New-message notifications: a stored record plus an FCM push when configured.

    Delivery is best-effort; failures are logged and never reach the sender.
    """

    def __init__(self, notification_repo: NotificationRepository, device_repo: DeviceRepository) -> None:
        self._notification_repo = notification_repo
        self._device_repo = device_repo

    async def notify_new_message(self, recipients: Iterable[str], message: MessageOut) -> None:
        sender = message.sender_username or "a user"
        for recipient_id in recipients:
            try:
                await self._notification_repo.create(
                    recipient_id,
                    f"New message from {sender}: {preview(message.content)}",
                    related_entity_type="conversation",
                    related_entity_id=message.conversation_id,
                )
                await self._push(recipient_id, sender, message)
            except Exception:
                logger.exception(
                    "Failed to notify %s about message %s in conversation %s",
                    recipient_id, message.id, message.conversation_id,
                )

    async def _push(self, recipient_id: str, sender: str, message: MessageOut) -> None:
        push = await get_push()
        if not push.enabled:
            return
        tokens = await self._device_repo.get_tokens(recipient_id, platform="fcm")
        if not tokens:
            logger.debug("User %s has no FCM tokens", recipient_id)
            return
        await push.send_fcm(
            tokens,
            f"New message from {sender}",
            message.content,
            {
                "conversationId": str(message.conversation_id),
                "messageId": str(message.id),
                "screen": "ChatScreen",
            },
        )

    async def list_for_user(self, identity: Identity, only_unread: bool = True, page: int = 1, page_size: int = 10) -> List[NotificationOut]:
        page, page_size = clamp_page(page, page_size)
        docs = await self._notification_repo.list_for_user(
            identity.user_id, only_unread, skip=(page - 1) * page_size, limit=page_size,
        )
        return [
            NotificationOut(
                id=doc["_id"],
                message=doc["message"],
                is_read=doc["is_read"],
                created_at=doc["created_at"],
                related_entity_type=doc.get("related_entity_type"),
                related_entity_id=doc.get("related_entity_id"),
            )
            for doc in docs
        ]

    async def mark_read(self, identity: Identity, notification_id: int) -> None:
        check_id("notificationId", notification_id)
        if not await self._notification_repo.mark_read(notification_id, identity.user_id):
            raise NotFound(f"Notification {notification_id} not found")
