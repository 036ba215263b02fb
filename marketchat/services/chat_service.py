import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from marketchat.config import settings
from marketchat.errors import Conflict, InvalidArgument, NotFound
from marketchat.models.conversation import ConversationKey
from marketchat.models.identity import Identity
from marketchat.repositories.catalog_repository import CatalogRepository
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.schemas.chat import ConversationSummary, MessageOut
from marketchat.services.access import AccessGuard, is_participant
from marketchat.services.notification_service import NotificationService
from marketchat.services.validation import check_id, clamp_page, is_valid_id


logger = logging.getLogger(__name__)



class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        catalog_repo: CatalogRepository,
        notifier: Optional[NotificationService] = None,
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._catalog_repo = catalog_repo
        self._notifier = notifier
        self._access = AccessGuard(conversation_repo)

    async def find_or_create(
        self,
        identity: Identity,
        target_user_id: str,
        store_id: int,
        order_id: Optional[int] = None,
        product_id: Optional[int] = None,
    ) -> Tuple[ConversationSummary, bool]:
        """
        Return the conversation between the caller and ``target_user_id`` for a store,
        creating it on first contact. The second element is True when it was created.

        Buyer and seller are derived from store ownership, not from the caller.
        """
        requester_id = identity.user_id
        if not target_user_id:
            raise InvalidArgument("targetUserId is required")
        if target_user_id == requester_id:
            raise InvalidArgument("User cannot create a conversation with themselves")
        check_id("storeId", store_id)
        if order_id is not None:
            check_id("orderId", order_id)
        if product_id is not None:
            check_id("productId", product_id)
        if order_id is not None and product_id is not None:
            raise InvalidArgument("A conversation can be about an order or a product, not both")

        requester = await self._user_repo.get_user_by_id(requester_id)
        if requester is None:
            raise NotFound(f"User {requester_id} not found")
        target = await self._user_repo.get_user_by_id(target_user_id)
        if target is None:
            raise NotFound(f"User {target_user_id} not found")
        if await self._catalog_repo.get_store(store_id) is None:
            raise NotFound(f"Store {store_id} not found")
        if order_id is not None:
            order = await self._catalog_repo.get_order(order_id)
            if order is None or order.get("store_id") != store_id:
                raise NotFound(f"Order {order_id} not found for store {store_id}")
        if product_id is not None:
            product = await self._catalog_repo.get_product(product_id)
            if product is None or product.get("store_id") != store_id:
                raise NotFound(f"Product {product_id} not found for store {store_id}")

        requester_sells = requester.get("store_id") == store_id
        target_sells = target.get("store_id") == store_id
        if requester_sells and target_sells:
            logger.error("Users %s and %s are both sellers for store %s", requester_id, target_user_id, store_id)
            raise InvalidArgument("Both users are sellers for this store")
        if requester_sells:
            buyer_id, seller_id = target_user_id, requester_id
        elif target_sells:
            buyer_id, seller_id = requester_id, target_user_id
        else:
            raise InvalidArgument(f"Neither user sells for store {store_id}")

        key = ConversationKey(buyer_id, seller_id, store_id, order_id, product_id)
        existing = await self._conversation_repo.find_by_key(key)
        if existing is not None:
            return await self._summarize(existing, identity), False

        try:
            created = await self._conversation_repo.insert(key)
        except DuplicateKeyError:
            # lost a concurrent find-or-create; the winner's row is authoritative
            winner = await self._conversation_repo.find_by_key(key)
            if winner is None:
                raise Conflict("Conversation was created concurrently and could not be re-read")
            logger.info("Concurrent create for %s resolved to conversation %s", key, winner["_id"])
            return await self._summarize(winner, identity), False

        logger.info(
            "Created conversation %s buyer=%s seller=%s store=%s order=%s product=%s",
            created["_id"], buyer_id, seller_id, store_id, order_id, product_id,
        )
        return await self._summarize(created, identity), True

    async def can_access(self, identity: Identity, conversation_id: int) -> bool:
        if not is_valid_id(conversation_id):
            return False
        conversation = await self._conversation_repo.get(conversation_id)
        return self._access.can_access(identity, conversation)

    async def save_message(self, identity: Identity, conversation_id: int, content: str, is_private: bool = False) -> MessageOut:
        check_id("conversationId", conversation_id)
        content = content or ""
        if not content.strip():
            raise InvalidArgument("Message content cannot be empty")
        if len(content) > settings.message_max_length:
            raise InvalidArgument(f"Message content exceeds {settings.message_max_length} characters")

        conversation = await self._access.authorize(identity, conversation_id)
        saved = await self._message_repo.save_message(conversation_id, identity.user_id, content, is_private)
        await self._conversation_repo.update_on_new_message(conversation_id, saved["_id"], saved["sent_at"])
        logger.info(
            "Message %s saved to conversation %s by %s (private=%s)",
            saved["_id"], conversation_id, identity.user_id, is_private,
        )

        usernames = await self._user_repo.get_usernames([identity.user_id])
        message = MessageOut.from_document(saved, usernames.get(identity.user_id))
        if self._notifier is not None and not is_private:
            recipients = [
                user_id for user_id in (conversation["buyer_id"], conversation["seller_id"])
                if user_id != identity.user_id
            ]
            await self._notifier.notify_new_message(recipients, message)
        return message

    async def list_messages(self, identity: Identity, conversation_id: int, page: int = 1, page_size: int = 30) -> List[MessageOut]:
        check_id("conversationId", conversation_id)
        page, page_size = clamp_page(page, page_size)
        await self._access.authorize(identity, conversation_id)
        docs = await self._message_repo.get_messages_by_conversation(
            conversation_id,
            viewer_id=identity.user_id,
            include_private=identity.is_admin,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        usernames = await self._user_repo.get_usernames(doc["sender_id"] for doc in docs)
        return [MessageOut.from_document(doc, usernames.get(doc["sender_id"])) for doc in docs]

    async def mark_read(self, identity: Identity, conversation_id: int) -> int:
        check_id("conversationId", conversation_id)
        conversation = await self._access.authorize(identity, conversation_id)
        if not is_participant(identity.user_id, conversation):
            # admins may look, but only participants own read state
            return 0
        updated = await self._message_repo.mark_read(conversation_id, identity.user_id)
        logger.info("Marked %s messages read in conversation %s for %s", updated, conversation_id, identity.user_id)
        return updated

    async def list_conversations(self, identity: Identity) -> List[ConversationSummary]:
        conversations = await self._conversation_repo.list_for_user(identity.user_id)
        return [await self._summarize(conv, identity) for conv in conversations]

    async def conversation_ids_for_user(self, user_id: str) -> List[int]:
        return await self._conversation_repo.list_ids_for_user(user_id)

    async def _last_visible_message(self, conversation: Dict[str, Any], viewer: Identity) -> Optional[Dict[str, Any]]:
        last_id = conversation.get("last_message_id")
        if last_id is None:
            return None
        last = await self._message_repo.get(last_id)
        if last is not None and (not last.get("is_private") or viewer.is_admin or last["sender_id"] == viewer.user_id):
            return last
        latest = await self._message_repo.get_messages_by_conversation(
            conversation["_id"], viewer_id=viewer.user_id, include_private=viewer.is_admin, skip=0, limit=1,
        )
        return latest[0] if latest else None

    async def _summarize(self, conversation: Dict[str, Any], viewer: Identity) -> ConversationSummary:
        last = await self._last_visible_message(conversation, viewer)
        user_ids = [conversation["buyer_id"], conversation["seller_id"]]
        if last is not None:
            user_ids.append(last["sender_id"])
        usernames = await self._user_repo.get_usernames(user_ids)

        store = await self._catalog_repo.get_store(conversation["store_id"])
        product_name = None
        if conversation.get("product_id") is not None:
            product = await self._catalog_repo.get_product(conversation["product_id"])
            product_name = product.get("name") if product else None

        return ConversationSummary(
            id=conversation["_id"],
            buyer_user_id=conversation["buyer_id"],
            buyer_username=usernames.get(conversation["buyer_id"]),
            seller_user_id=conversation["seller_id"],
            seller_username=usernames.get(conversation["seller_id"]),
            store_id=conversation["store_id"],
            store_name=store.get("name") if store else None,
            order_id=conversation.get("order_id"),
            product_id=conversation.get("product_id"),
            product_name=product_name,
            created_at=conversation["created_at"],
            last_message=MessageOut.from_document(last, usernames.get(last["sender_id"])) if last else None,
            unread_messages_count=await self._message_repo.count_unread(conversation["_id"], viewer.user_id),
        )
