"""Application wiring: health, login and error responses."""

from fastapi.testclient import TestClient


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_login_returns_usable_token(client: TestClient, world) -> None:
    response = client.post("/api/v1/auth/login", json={"email": "Staff@Example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "staff@example.com"
    assert me.json()["role"] == "STAFF"


def test_login_rejects_wrong_password(client: TestClient, world) -> None:
    response = client.post("/api/v1/auth/login", json={"email": "staff@example.com", "password": "wrong"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Incorrect email or password", "code": "UNAUTHORIZED"}


def test_unknown_resources_use_error_shape(client: TestClient, world, auth) -> None:
    response = client.get("/api/v1/orders/999", headers=auth(world.staff_id))
    assert response.status_code == 404
    assert response.json() == {"detail": "Order not found", "code": "NOT_FOUND"}
