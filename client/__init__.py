"""
client — async client for the authflow API.

    from client import create_client

    async with create_client() as auth:
        await auth.session.login("test@local", "1234")
        await auth.router.push("/account")
        profile = (await auth.api.get("/api/me")).json()

create_client() wires one httpx.AsyncClient into an AuthSession, an
ApiClient (request guard) and a Router whose protected prefixes are
guarded by AuthRouteGuard.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

import httpx

from client.api import ApiClient
from client.config import ClientSettings
from client.router import AuthRouteGuard, Router
from client.session import AuthSession
from client.storage import (
    EncryptedFileStorage,
    KeyringStorage,
    SessionStorage,
    resolve_encryption_key,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthClient:
    http: httpx.AsyncClient
    session: AuthSession
    api: ApiClient
    router: Router

    async def aclose(self) -> None:
        await self.http.aclose()

    async def __aenter__(self) -> "AuthClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def _build_storage(settings: ClientSettings) -> SessionStorage | None:
    if settings.use_keyring:
        return KeyringStorage()
    if settings.session_file:
        key = resolve_encryption_key(
            settings.session_file.with_suffix(".key"),
            explicit_key=settings.session_key,
        )
        return EncryptedFileStorage(settings.session_file, key)
    return None


def create_client(
        settings: ClientSettings | None = None,
        protected_prefixes: tuple[str, ...] = ("/account",),
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], int] | None = None,
) -> AuthClient:
    settings = settings or ClientSettings.from_env()

    http = httpx.AsyncClient(
        base_url=settings.api_base,
        timeout=settings.timeout,
        transport=transport,
    )
    storage = _build_storage(settings)
    session = AuthSession(http, storage=storage, clock=clock)
    session.restore()

    router = Router(initial_path=settings.landing_path)
    router.use(AuthRouteGuard(session, landing_path=settings.landing_path), protected_prefixes)

    api = ApiClient(http, session, router=router, landing_path=settings.landing_path)
    logger.info("Client ready for %s (persistent=%s)", settings.api_base, storage is not None)
    return AuthClient(http=http, session=session, api=api, router=router)
