"""
tests/integration/conftest.py — Fixtures and helpers for all integration tests.

Design:
  - Tests run against in-memory SQLite through create_app("testing").
  - Every test gets its own app, and therefore its own empty database with
    only the seeded demo account (test@local / 1234). No cleanup needed.
  - `clock` replaces token_service._utcnow so tests can move server time
    forward without sleeping.

Helper functions (not fixtures) are provided for common operations:
  - register(client, ...)    → token response dict
  - login(client, ...)       → token response dict
  - refresh(client, token)   → HTTP response
  - auth_headers(token)      → {"Authorization": "Bearer <token>"}

These are plain functions (not pytest fixtures) so they can be called with
arbitrary arguments in any test.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from backend.app import create_app
from backend.app.services import token_service

DEMO_EMAIL = "test@local"
DEMO_PASSWORD = "1234"


# ═══════════════════════════════════════════════════════════════════════════
# App / client fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app():
    """Flask app in 'testing' mode with a fresh in-memory database."""
    return create_app("testing")


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


class ServiceClock:
    """Controllable replacement for token_service._utcnow."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock(monkeypatch):
    service_clock = ServiceClock(datetime.now(timezone.utc))
    monkeypatch.setattr(token_service, "_utcnow", service_clock)
    return service_clock


# ═══════════════════════════════════════════════════════════════════════════
# Shared helper functions (not fixtures)
# ═══════════════════════════════════════════════════════════════════════════

def register(
    client,
    email: str = "alice@test.com",
    password: str = "Password1",
    name: str | None = None,
) -> dict:
    payload = {"email": email, "password": password}
    if name is not None:
        payload["name"] = name
    resp = client.post("/api/auth/register", json=payload)
    assert resp.status_code == 200, f"register failed: {resp.get_json()}"
    return resp.get_json()


def login(client, email: str = DEMO_EMAIL, password: str = DEMO_PASSWORD) -> dict:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, f"login failed: {resp.get_json()}"
    return resp.get_json()


def refresh(client, refresh_token: str):
    return client.post("/api/auth/refresh-token", json={"refreshToken": refresh_token})


def auth_headers(token: str) -> dict:
    """Returns the Authorization header dict for use in test requests."""
    return {"Authorization": f"Bearer {token}"}
