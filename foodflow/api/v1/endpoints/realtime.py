"""WebSocket endpoint for realtime order and delivery rooms."""

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from foodflow.core.errors import AppError
from foodflow.core.security import user_from_token
from foodflow.db import session as db_session
from foodflow.models import User
from foodflow.services.realtime import manager
from foodflow.services.security_guards import can_join_room

router: APIRouter = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def realtime(websocket: WebSocket, token: str = Query(default="")) -> None:
    """Accept ``{"action": "join"|"leave", "room": "order:12"}`` messages after token auth."""
    with db_session.SessionLocal() as db:
        try:
            user = user_from_token(db, token)
        except AppError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        user_id = user.id

    await manager.connect(websocket)
    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action") if isinstance(message, dict) else None
            room = str(message.get("room", "")) if isinstance(message, dict) else ""
            if action == "leave":
                manager.leave(websocket, room)
                await websocket.send_json({"event": "left", "room": room})
                continue
            if action != "join":
                await websocket.send_json({"event": "error", "detail": "Unknown action"})
                continue
            with db_session.SessionLocal() as db:
                member = db.get(User, user_id)
                allowed = member is not None and member.is_active and can_join_room(db, member, room)
            if not allowed:
                logger.info("[WS] user_id=%s denied room %s", user_id, room)
                await websocket.send_json({"event": "error", "room": room, "detail": "Forbidden"})
                continue
            manager.join(websocket, room)
            await websocket.send_json({"event": "joined", "room": room})
    except WebSocketDisconnect:
        manager.disconnect(websocket)
