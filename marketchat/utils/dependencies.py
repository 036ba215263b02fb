from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from marketchat.database.connection import mongo_db_dependency
from marketchat.errors import Unauthenticated
from marketchat.models.identity import Identity
from marketchat.repositories.catalog_repository import CatalogRepository
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.notification_repository import NotificationRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.services.chat_service import ChatService
from marketchat.services.notification_service import NotificationService
from marketchat.utils.security import identity_from_token


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("Missing bearer token")
    return identity_from_token(credentials.credentials)


def get_notification_service(db = Depends(mongo_db_dependency)) -> NotificationService:
    return NotificationService(NotificationRepository(db), DeviceRepository(db))


def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    return ChatService(
        MessageRepository(db),
        ConversationRepository(db),
        UserRepository(db),
        CatalogRepository(db),
        notifier=get_notification_service(db),
    )
