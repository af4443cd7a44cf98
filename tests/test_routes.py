"""Tests for the booking HTTP API."""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import database
from config import Settings
from database import build_engine
from main import _bearer_token, build_app, create_app

from conftest import LIFF_URL, FakeAuth, FakeMessenger

SOMCHAI = {
    "name": "Somchai",
    "phone": "0812345678",
    "date": "2025-09-05",
    "time": "11:00",
    "symptom": "fever",
}
AUTH = {"Authorization": "Bearer liff-access-token"}


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def client(auth):
    """Create test client with in-memory database."""
    engine = build_engine("sqlite+aiosqlite://")
    app = create_app(
        engine=engine,
        auth=auth,
        messenger=FakeMessenger(),
        settings=Settings(database_url="sqlite+aiosqlite://"),
    )
    with TestClient(app) as test_client:
        yield test_client


class TestBookings:
    def test_create_booking(self, client):
        response = client.post("/bookings", json=SOMCHAI, headers=AUTH)

        assert response.status_code == 201
        data = response.json()
        assert data["ok"] is True
        assert data["close_view"] is True
        assert data["booking"]["scheduled_at"] == "2025-09-05T11:00:00"
        assert "11:00" in data["confirmation"]
        assert "fever" in data["confirmation"]

    def test_duplicate_booking_conflict(self, client):
        client.post("/bookings", json=SOMCHAI, headers=AUTH)

        response = client.post("/bookings", json=SOMCHAI, headers=AUTH)

        assert response.status_code == 409
        assert response.json()["error"] == "SlotUnavailable"

    def test_missing_field(self, client):
        response = client.post("/bookings", json={**SOMCHAI, "symptom": ""}, headers=AUTH)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationFailed"

    def test_empty_body_is_validation_failed(self, client):
        response = client.post("/bookings", json={}, headers=AUTH)

        assert response.status_code == 400

    def test_no_authorization_header(self, client):
        response = client.post("/bookings", json=SOMCHAI)

        assert response.status_code == 401
        data = response.json()
        assert data["error"] == "AuthRequired"
        assert data["login_url"] == LIFF_URL

    def test_not_logged_in(self, client, auth):
        auth.logged_in = False

        response = client.post("/bookings", json=SOMCHAI, headers=AUTH)

        assert response.status_code == 401


class TestSlots:
    def test_day_grid(self, client):
        client.post("/bookings", json=SOMCHAI, headers=AUTH)

        response = client.get("/slots", params={"target_date": "2025-09-05"})

        assert response.status_code == 200
        grid = response.json()
        assert len(grid) == 20
        occupied = [s["time"] for s in grid if s["status"] == "occupied"]
        assert occupied == ["11:00"]

    def test_bad_date(self, client):
        response = client.get("/slots", params={"target_date": "tomorrow"})

        assert response.status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc", "abc"),
        ("bearer abc ", "abc"),
        ("Basic abc", None),
        ("Bearer ", None),
        (None, None),
    ],
)
def test_bearer_token(header, expected):
    assert _bearer_token(header) == expected


def test_build_app_from_environment(monkeypatch):
    monkeypatch.setattr(database, "_engine", None)
    env = {"DATABASE_URL": "sqlite+aiosqlite://", "LIFF_ID": "1657000000-AbCdEfGh"}
    with patch.dict("os.environ", env, clear=True):
        app = build_app()

    assert isinstance(app, FastAPI)
    paths = {route.path for route in app.routes}
    assert {"/slots", "/bookings", "/health"} <= paths

    with TestClient(app) as test_client:
        assert test_client.get("/health").json() == {"status": "ok"}
        response = test_client.post("/bookings", json=SOMCHAI)

    assert response.status_code == 401
    assert response.json()["login_url"] == "https://liff.line.me/1657000000-AbCdEfGh"
