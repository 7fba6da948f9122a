"""WebSocket connection hub: outbound queues and call broadcast groups."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

Envelope = dict[str, Any]


@dataclass
class Connection:
    id: str
    websocket: WebSocket | None = None
    user_id: str | None = None
    role: str | None = None
    outbox: asyncio.Queue[Envelope | None] = field(default_factory=asyncio.Queue)


class ConnectionHub:
    """Tracks live connections and the call groups they are subscribed to.

    Every send is a non-blocking enqueue; a writer task per connection
    (``pump``) performs the actual socket write, so event handlers never
    await transport I/O.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._groups: dict[str, set[str]] = defaultdict(set)

    async def connect(self, websocket: WebSocket) -> Connection:
        await websocket.accept()
        return self.open(websocket=websocket)

    def open(self, websocket: WebSocket | None = None) -> Connection:
        connection = Connection(id=uuid.uuid4().hex, websocket=websocket)
        self._connections[connection.id] = connection
        logger.info("Connection opened: %s", connection.id)
        return connection

    def disconnect(self, connection_id: str) -> Connection | None:
        connection = self._connections.pop(connection_id, None)
        if connection is None:
            return None
        for group in list(self._groups):
            self.leave_group(group=group, connection_id=connection_id)
        connection.outbox.put_nowait(None)
        logger.info("Connection closed: %s (user=%s)", connection_id, connection.user_id)
        return connection

    def get(self, connection_id: str) -> Connection | None:
        return self._connections.get(connection_id)

    def __len__(self) -> int:
        return len(self._connections)

    def join_group(self, group: str, connection_id: str) -> None:
        if connection_id in self._connections:
            self._groups[group].add(connection_id)

    def leave_group(self, group: str, connection_id: str) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            self._groups.pop(group, None)

    def drop_group(self, group: str) -> None:
        self._groups.pop(group, None)

    def group_members(self, group: str) -> set[str]:
        return set(self._groups.get(group, set()))

    def send(self, connection_id: str, event: str, data: dict[str, Any]) -> bool:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug("Dropping %s for unknown connection %s", event, connection_id)
            return False
        connection.outbox.put_nowait({"event": event, "data": data})
        return True

    def broadcast(self, event: str, data: dict[str, Any]) -> None:
        for connection_id in list(self._connections):
            self.send(connection_id, event, data)

    def send_group(
        self,
        group: str,
        event: str,
        data: dict[str, Any],
        exclude: str | None = None,
    ) -> None:
        for connection_id in self.group_members(group):
            if connection_id != exclude:
                self.send(connection_id, event, data)

    async def pump(self, connection: Connection) -> None:
        """Drain the connection's outbox onto its websocket until closed."""
        if connection.websocket is None:
            return
        while True:
            envelope = await connection.outbox.get()
            if envelope is None:
                return
            try:
                await connection.websocket.send_json(envelope)
            except (RuntimeError, WebSocketDisconnect):
                logger.debug("Stale websocket for connection %s", connection.id)
                return
            except Exception:
                logger.exception("Writer for connection %s failed", connection.id)
                return
