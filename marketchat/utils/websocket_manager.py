import asyncio
import json
import logging
from typing import Dict, Optional, Set

from fastapi import WebSocket

from marketchat.models.identity import Identity
from marketchat.utils.realtime_bus import ROOMS_CHANNEL, get_bus


logger = logging.getLogger(__name__)


def room_name(conversation_id: int) -> str:
    return f"conversation_{conversation_id}"


class ConnectionManager:
    """Live WebSocket connections grouped into one room per conversation.

    Room membership is process-local and never a source of truth for access.
    With Redis enabled, ``broadcast`` goes through the realtime bus so every
    instance delivers to the members it holds.
    """

    def __init__(self) -> None:
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_identities: Dict[str, Identity] = {}
        # conversation_id -> connection ids
        self.rooms: Dict[int, Set[str]] = {}
        # connection id -> conversation ids
        self.connection_rooms: Dict[str, Set[int]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop_id: Optional[int] = None

    def _get_lock(self) -> asyncio.Lock:
        loop_id = id(asyncio.get_running_loop())
        if self._lock is None or self._lock_loop_id != loop_id:
            self._lock = asyncio.Lock()
            self._lock_loop_id = loop_id
        return self._lock

    async def connect(self, connection_id: str, identity: Identity, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._get_lock():
            self.active_connections[connection_id] = websocket
            self.connection_identities[connection_id] = identity
            self.connection_rooms[connection_id] = set()
        logger.info("User %s connected as %s", identity.user_id, connection_id)

    async def disconnect(self, connection_id: str) -> None:
        async with self._get_lock():
            self.active_connections.pop(connection_id, None)
            identity = self.connection_identities.pop(connection_id, None)
            for conversation_id in self.connection_rooms.pop(connection_id, set()):
                members = self.rooms.get(conversation_id)
                if members is None:
                    continue
                members.discard(connection_id)
                if not members:
                    del self.rooms[conversation_id]
        logger.info("Connection %s (user %s) disconnected", connection_id, identity.user_id if identity else "N/A")

    async def join(self, connection_id: str, conversation_id: int) -> bool:
        async with self._get_lock():
            if connection_id not in self.active_connections:
                return False
            self.rooms.setdefault(conversation_id, set()).add(connection_id)
            self.connection_rooms[connection_id].add(conversation_id)
        logger.debug("Connection %s joined %s", connection_id, room_name(conversation_id))
        return True

    async def leave(self, connection_id: str, conversation_id: int) -> None:
        async with self._get_lock():
            members = self.rooms.get(conversation_id)
            if members is not None:
                members.discard(connection_id)
                if not members:
                    del self.rooms[conversation_id]
            rooms = self.connection_rooms.get(connection_id)
            if rooms is not None:
                rooms.discard(conversation_id)
        logger.debug("Connection %s left %s", connection_id, room_name(conversation_id))

    def room_members(self, conversation_id: int) -> Set[str]:
        return set(self.rooms.get(conversation_id, set()))

    def rooms_for(self, connection_id: str) -> Set[int]:
        return set(self.connection_rooms.get(connection_id, set()))

    async def send_personal_message(self, connection_id: str, message: str) -> None:
        websocket = self.active_connections.get(connection_id)
        if websocket is not None:
            await websocket.send_text(message)

    async def deliver_local(self, conversation_id: int, message: str, private_sender: Optional[str] = None) -> int:
        """Send ``message`` to every local member of the room; returns the delivery count.

        When ``private_sender`` is set only that user's and admins' connections receive it.
        """
        async with self._get_lock():
            targets = []
            for connection_id in self.rooms.get(conversation_id, set()):
                identity = self.connection_identities.get(connection_id)
                if private_sender is not None and identity is not None:
                    if identity.user_id != private_sender and not identity.is_admin:
                        continue
                websocket = self.active_connections.get(connection_id)
                if websocket is not None:
                    targets.append((connection_id, websocket))

        delivered = 0
        dead = []
        for connection_id, websocket in targets:
            try:
                await websocket.send_text(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping connection %s after failed send to %s", connection_id, room_name(conversation_id), exc_info=True)
                dead.append(connection_id)
        for connection_id in dead:
            await self.disconnect(connection_id)
        return delivered

    async def broadcast(self, conversation_id: int, message: str, private_sender: Optional[str] = None) -> None:
        bus = await get_bus()
        if bus.enabled:
            envelope = json.dumps({"room": conversation_id, "payload": message, "private_sender": private_sender})
            try:
                await bus.publish(ROOMS_CHANNEL, envelope)
                return
            except Exception:
                # the message is already stored; other instances miss this one
                logger.exception("Publish to %s failed; delivering %s locally only", ROOMS_CHANNEL, room_name(conversation_id))
        await self.deliver_local(conversation_id, message, private_sender)

    async def handle_bus_message(self, data: str) -> None:
        envelope = json.loads(data)
        await self.deliver_local(int(envelope["room"]), envelope["payload"], envelope.get("private_sender"))


manager = ConnectionManager()
