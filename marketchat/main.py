import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from marketchat.config import settings
from marketchat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from marketchat.errors import ChatError, InvalidArgument, Unavailable
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.notification_repository import NotificationRepository
from marketchat.routers.chat import router as chat_router
from marketchat.routers.conversations import router as conversations_router
from marketchat.routers.devices import router as devices_router
from marketchat.routers.notifications import router as notifications_router
from marketchat.utils.realtime_bus import ROOMS_CHANNEL, close_bus, get_bus
from marketchat.utils.websocket_manager import manager


logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def ensure_indexes() -> None:
    db = get_database()
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    await NotificationRepository(db).ensure_indexes()
    await DeviceRepository(db).ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    await ensure_indexes()
    bus = await get_bus()
    subscriber = None
    sub_task = None
    if bus.enabled:
        subscriber = await bus.subscribe(ROOMS_CHANNEL, manager.handle_bus_message)
        sub_task = asyncio.create_task(subscriber.run())
    try:
        yield
    finally:
        if subscriber is not None:
            await subscriber.cancel()
            sub_task.cancel()
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title="Marketplace Chat", lifespan=lifespan)


@app.exception_handler(ChatError)
async def chat_error_handler(request: Request, exc: ChatError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail, "code": exc.code})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=InvalidArgument.status_code,
        content={"detail": jsonable_encoder(exc.errors()), "code": InvalidArgument.code},
    )


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=Unavailable.status_code,
        content={"detail": "Storage is unavailable", "code": Unavailable.code},
    )


app.include_router(conversations_router)
app.include_router(chat_router)
app.include_router(devices_router)
app.include_router(notifications_router)


@app.get("/health")
async def health():
    return {"status": "ok"}
