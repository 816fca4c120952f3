"""WebSocket room subscription tests."""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from foodflow.core.security import create_access_token


def _token(user_id: int) -> str:
    return create_access_token(data={"sub": str(user_id)})


def test_rejects_missing_or_invalid_token(client: TestClient) -> None:
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/api/v1/ws?token=garbage") as websocket:
            websocket.receive_json()


def test_staff_joins_restaurant_room(client: TestClient, world) -> None:
    with client.websocket_connect(f"/api/v1/ws?token={_token(world.staff_id)}") as websocket:
        websocket.send_json({"action": "join", "room": f"restaurant:{world.restaurant_id}"})
        assert websocket.receive_json() == {"event": "joined", "room": f"restaurant:{world.restaurant_id}"}

        websocket.send_json({"action": "leave", "room": f"restaurant:{world.restaurant_id}"})
        assert websocket.receive_json()["event"] == "left"


def test_customer_denied_restaurant_room(client: TestClient, world) -> None:
    with client.websocket_connect(f"/api/v1/ws?token={_token(world.customer_id)}") as websocket:
        websocket.send_json({"action": "join", "room": f"restaurant:{world.restaurant_id}"})
        reply = websocket.receive_json()
        assert reply["event"] == "error"
        assert reply["detail"] == "Forbidden"

        websocket.send_json({"action": "dance"})
        assert websocket.receive_json() == {"event": "error", "detail": "Unknown action"}
