import json
import os
import uuid

# tests run single-instance: no Redis fan-out, no push
os.environ.pop("REDIS_URL", None)
os.environ.pop("FCM_SERVICE_ACCOUNT_FILE", None)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from mongomock_motor import AsyncMongoMockClient  # noqa: E402
from pymongo.errors import ServerSelectionTimeoutError  # noqa: E402

from marketchat.models.identity import Identity, Role  # noqa: E402
from marketchat.repositories.catalog_repository import CatalogRepository  # noqa: E402
from marketchat.repositories.conversation_repository import ConversationRepository  # noqa: E402
from marketchat.repositories.device_repository import DeviceRepository  # noqa: E402
from marketchat.repositories.message_repository import MessageRepository  # noqa: E402
from marketchat.repositories.notification_repository import NotificationRepository  # noqa: E402
from marketchat.repositories.user_repository import UserRepository  # noqa: E402
from marketchat.services.chat_service import ChatService  # noqa: E402
from marketchat.services.notification_service import NotificationService  # noqa: E402


STORE_ID = 10
OTHER_STORE_ID = 20
PRODUCT_ID = 5
ORDER_ID = 7

BUYER = Identity("u1", frozenset({Role.BUYER}))
SELLER = Identity("u2", frozenset({Role.SELLER}))
OUTSIDER = Identity("u3")
ADMIN = Identity("admin", frozenset({Role.ADMIN}))


def make_database():
    return AsyncMongoMockClient()[f"marketchat_test_{uuid.uuid4().hex}"]


async def seed_marketplace(db) -> None:
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    # the user directory is owned by the account service; seed it directly
    await db["users"].insert_many([
        {"_id": "u1", "username": "buyer-one", "store_id": None},
        {"_id": "u2", "username": "corner-shop-owner", "store_id": STORE_ID},
        {"_id": "u3", "username": "someone-else", "store_id": None},
        {"_id": "u4", "username": "second-seller", "store_id": STORE_ID},
        {"_id": "admin", "username": "site-admin", "store_id": None},
    ])
    await db["stores"].insert_many([
        {"_id": STORE_ID, "name": "Corner Shop"},
        {"_id": OTHER_STORE_ID, "name": "Elsewhere"},
    ])
    await db["products"].insert_one({"_id": PRODUCT_ID, "store_id": STORE_ID, "name": "Walnut Honey"})
    await db["orders"].insert_one({"_id": ORDER_ID, "store_id": STORE_ID, "buyer_id": "u1"})


def build_chat_service(db, conversation_repo=None) -> ChatService:
    return ChatService(
        MessageRepository(db),
        conversation_repo or ConversationRepository(db),
        UserRepository(db),
        CatalogRepository(db),
        notifier=NotificationService(NotificationRepository(db), DeviceRepository(db)),
    )


@pytest_asyncio.fixture
async def db():
    database = make_database()
    await seed_marketplace(database)
    yield database


@pytest.fixture
def service(db) -> ChatService:
    return build_chat_service(db)


class FakeWebSocket:
    """Records frames sent by the server; optionally fails like a dropped socket."""

    def __init__(self, fail: bool = False) -> None:
        self.accepted = False
        self.fail = fail
        self.sent = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("socket is closed")
        self.sent.append(json.loads(text))

    def of_type(self, event_type: str):
        return [frame for frame in self.sent if frame["type"] == event_type]


class UnreachableConversationRepository(ConversationRepository):
    """Fails the named calls the way an unreachable MongoDB does."""

    def __init__(self, db, *failing: str) -> None:
        super().__init__(db)
        for name in failing:
            setattr(self, name, self._unreachable)

    @staticmethod
    async def _unreachable(*args, **kwargs):
        raise ServerSelectionTimeoutError("No servers available")


class RecordingBus:
    """Stands in for the Redis bus: keeps published envelopes instead of sending them."""

    enabled = True

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.published = []

    async def publish(self, channel: str, message: str) -> None:
        if self.fail:
            raise ConnectionError("Error 111 connecting to redis:6379. Connection refused.")
        self.published.append((channel, json.loads(message)))
