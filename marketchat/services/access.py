import logging
from typing import Any, Dict, Optional

from marketchat.errors import Forbidden, NotFound
from marketchat.models.identity import Identity
from marketchat.repositories.conversation_repository import ConversationRepository


logger = logging.getLogger(__name__)


def is_participant(user_id: str, conversation: Dict[str, Any]) -> bool:
    return user_id in (conversation.get("buyer_id"), conversation.get("seller_id"))


class AccessGuard:
    """Decides whether an identity may read or write a conversation.

    Access is always derived from the stored conversation, never from live
    room membership.
    """

    def __init__(self, conversation_repo: ConversationRepository) -> None:
        self._conversation_repo = conversation_repo

    @staticmethod
    def can_access(identity: Identity, conversation: Optional[Dict[str, Any]]) -> bool:
        if conversation is None:
            return False
        return identity.is_admin or is_participant(identity.user_id, conversation)

    async def authorize(self, identity: Identity, conversation_id: int) -> Dict[str, Any]:
        conversation = await self._conversation_repo.get(conversation_id)
        if conversation is None:
            raise NotFound(f"Conversation {conversation_id} not found")
        if not self.can_access(identity, conversation):
            logger.warning("User %s denied access to conversation %s", identity.user_id, conversation_id)
            raise Forbidden("You do not have access to this conversation")
        return conversation
