from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)


class ConnectionHub:
    """Deliver session events to connected clients.

    Each connection owns a FIFO mailbox; rooms group connections by session
    code. Sends never block and never wait for delivery.
    """

    def __init__(self):
        self.mailboxes: Dict[str, asyncio.Queue] = {}
        self.rooms: Dict[str, Set[str]] = {}

    def connect(self, connection_id: str | None = None) -> str:
        """Open a mailbox and return the connection id it is addressed by."""

        connection_id = connection_id or uuid.uuid4().hex
        self.mailboxes[connection_id] = asyncio.Queue()
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        self.mailboxes.pop(connection_id, None)
        for room in list(self.rooms):
            self.leave_room(room, connection_id)

    def join_room(self, room: str, connection_id: str) -> None:
        self.rooms.setdefault(room, set()).add(connection_id)

    def leave_room(self, room: str, connection_id: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            self.rooms.pop(room, None)

    def close_room(self, room: str) -> None:
        self.rooms.pop(room, None)

    def send(self, connection_id: str, event: str, data: Any = None) -> None:
        """Queue one event for a single connection."""

        mailbox = self.mailboxes.get(connection_id)
        if mailbox is None:
            logger.debug("dropping %s for unknown connection %s", event, connection_id)
            return
        mailbox.put_nowait({"event": event, "data": data})

    def broadcast(self, room: str, event: str, data: Any = None, skip: Optional[str] = None) -> None:
        """Queue an event for every member of a room, optionally except one."""

        for connection_id in self.rooms.get(room, ()):
            if connection_id != skip:
                self.send(connection_id, event, data)

    async def receive(self, connection_id: str) -> dict[str, Any]:
        return await self.mailboxes[connection_id].get()
