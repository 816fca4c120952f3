"""Room-based WebSocket connection manager."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(self) -> None:
        self.active_connections: set[WebSocket] = set()
        self.rooms: dict[str, set[WebSocket]] = defaultdict(set)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.add(websocket)
        logger.info("[WS] Client connected (%s active)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket) -> None:
        self.active_connections.discard(websocket)
        for room in list(self.rooms):
            self.leave(websocket, room)
        logger.info("[WS] Client disconnected (%s active)", len(self.active_connections))

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms[room].add(websocket)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(websocket)
        if not members:
            del self.rooms[room]

    def room_size(self, room: str) -> int:
        return len(self.rooms.get(room, ()))

    async def broadcast(self, rooms: Iterable[str], message: dict[str, Any]) -> int:
        """Send ``message`` once to every socket in any of ``rooms``; return the delivery count."""
        targets: set[WebSocket] = set()
        for room in rooms:
            targets.update(self.rooms.get(room, ()))

        dead: list[WebSocket] = []
        delivered = 0
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("[WS] Dropping socket after failed send")
                dead.append(websocket)

        for websocket in dead:
            self.disconnect(websocket)
        return delivered


manager = ConnectionManager()
