"""
Application wiring tests: system endpoints, error formatting, middleware
and the optional request gate.
"""

import logging
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.core.errors import NotFoundError
from app.main import create_app
from app.services.user_repository import UserRepository


def test_health_is_public(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["timestamp"].endswith("Z")


def test_health_ignores_bad_tokens(client):
    response = client.get("/api/health", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_route(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {"error": "Route not found"}


def test_security_headers_and_request_id(client):
    response = client.get("/api/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert response.headers["X-Request-ID"] == "abc123"


def test_cors_allows_configured_origin(client):
    response = client.options(
        "/api/auth/login",
        headers={"Origin": "http://localhost:3000", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert response.headers["access-control-allow-credentials"] == "true"


class TestErrorFormatting:
    def test_unexpected_errors_are_not_leaked(self, database):
        app = create_app(database=database)

        @app.get("/api/explode")
        async def explode():
            raise RuntimeError("database password is hunter2")

        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/explode")

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert "hunter2" not in response.text

    def test_unexpected_errors_keep_response_headers(self, database, caplog):
        app = create_app(database=database)

        @app.get("/api/explode")
        async def explode():
            raise RuntimeError("boom")

        caplog.set_level(logging.INFO, logger="app.core.middleware")
        with TestClient(app, raise_server_exceptions=False) as test_client:
            response = test_client.get("/api/explode", headers={"X-Request-ID": "abc"})

        assert response.status_code == 500
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
        assert response.headers["X-Request-ID"] == "abc"
        assert any("GET /api/explode 500" in r.getMessage() and "id=abc" in r.getMessage() for r in caplog.records)

    def test_app_errors_keep_their_status_and_message(self, database):
        app = create_app(database=database)

        @app.get("/api/missing-thing")
        async def missing_thing():
            raise NotFoundError("Slip not found")

        with TestClient(app) as test_client:
            response = test_client.get("/api/missing-thing")

        assert response.status_code == 404
        assert response.json() == {"error": "Slip not found"}


class TestOptionalGate:
    def test_anonymous(self, client):
        response = client.get("/api/")

        assert response.status_code == 200
        assert "user" not in response.json()

    def test_invalid_token_is_ignored(self, client):
        response = client.get("/api/", headers={"Authorization": "Bearer garbage"})

        assert response.status_code == 200
        assert "user" not in response.json()

    def test_authenticated(self, client, user_data):
        registered = client.post("/api/auth/register", json=user_data).json()
        token = registered["data"]["tokens"]["accessToken"]

        response = client.get("/api/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == user_data["email"]
        assert user["username"] == user_data["username"]
        assert user["user_id"] == registered["data"]["user"]["id"]

    def test_inactive_user_is_anonymous(self, client, user_data, deactivate_user):
        registered = client.post("/api/auth/register", json=user_data).json()
        token = registered["data"]["tokens"]["accessToken"]
        deactivate_user(user_data["email"])

        response = client.get("/api/", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert "user" not in response.json()

    def test_user_lookup_failure_is_anonymous(self, client, user_data):
        registered = client.post("/api/auth/register", json=user_data).json()
        token = registered["data"]["tokens"]["accessToken"]

        with patch.object(
            UserRepository, "find_by_id", AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("down")))
        ):
            anonymous = client.get("/api/")
            authenticated = client.get("/api/", headers={"Authorization": f"Bearer {token}"})

        assert anonymous.status_code == 200
        assert authenticated.status_code == 200
        assert "user" not in authenticated.json()
