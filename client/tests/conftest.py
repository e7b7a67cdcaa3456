"""
client/tests/conftest.py — Fixtures for the client test suite.

Two ways to talk to a server:

  mock_http(handler)  an httpx.AsyncClient on httpx.MockTransport. The
                      handler sees every request; tests script responses.
  live_server         the real Flask app (create_app("testing")) behind
                      FlaskTransport, which forwards httpx requests to the
                      Flask test client and records every path it serves.

Time:
  clock   client clock in epoch ms (AuthSession(clock=...)). When a test
          also uses live_server, clock.advance() moves the server clock by
          the same amount.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx
import pytest

from backend.app import create_app
from backend.app.services import token_service

BASE_URL = "http://authflow.test"
START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class Clock:
    """Epoch-millisecond clock shared by client and (optionally) server."""

    def __init__(self, start: datetime) -> None:
        self.ms = int(start.timestamp()) * 1000

    def __call__(self) -> int:
        return self.ms

    def utcnow(self) -> datetime:
        return datetime.fromtimestamp(self.ms / 1000, tz=timezone.utc)

    def advance(self, **kwargs) -> None:
        self.ms += round(timedelta(**kwargs) / timedelta(milliseconds=1))


@pytest.fixture
def clock():
    return Clock(START)


def token_body(
    access: str = "access-1",
    refresh: str = "refresh-1",
    expires_in: int | None = 600000,
    refresh_expires_in: int | None = 1200000,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "accessToken": access,
        "refreshToken": refresh,
        "tokenType": "Bearer",
    }
    if expires_in is not None:
        body["expiresIn"] = expires_in
    if refresh_expires_in is not None:
        body["refreshExpiresIn"] = refresh_expires_in
    return body


def error_response(status: int, code: str, message: str = "error") -> httpx.Response:
    return httpx.Response(status, json={"error": {"code": code, "message": message}})


def request_json(request: httpx.Request) -> dict[str, Any]:
    return json.loads(request.content or b"{}")


def mock_http(handler: Callable) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


# ── Live server ────────────────────────────────────────────────────────────

class FlaskTransport(httpx.AsyncBaseTransport):
    """Serves httpx requests from a Flask test client."""

    def __init__(self, flask_client) -> None:
        self.flask_client = flask_client
        self.paths: list[str] = []

    def count(self, path: str) -> int:
        return self.paths.count(path)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        # yield so concurrent callers interleave like real network calls
        await asyncio.sleep(0)
        body = await request.aread()
        self.paths.append(request.url.path)

        response = self.flask_client.open(
            request.url.path,
            method=request.method,
            query_string=request.url.query.decode("ascii"),
            headers={
                key: value for key, value in request.headers.items()
                if key.lower() not in ("host", "content-length")
            },
            data=body,
        )
        return httpx.Response(
            response.status_code,
            headers={"Content-Type": response.content_type},
            content=response.get_data(),
        )


@pytest.fixture
def live_server(monkeypatch, clock):
    app = create_app("testing")
    monkeypatch.setattr(token_service, "_utcnow", clock.utcnow)
    return FlaskTransport(app.test_client())
