"""
client/session.py — Client-held authentication state.

AuthSession holds the current token pair, the two expiry timestamps and the
identity of the signed-in user, and exposes login / register / refresh /
logout against the /api/auth endpoints.

State rules:
  - Responses are applied in one synchronous step (no await in between), so
    no coroutine ever sees a half-updated pair.
  - Any failed refresh() clears every field before re-raising.
  - logout() never raises and always clears local state.
  - Every state change bumps an epoch. A refresh that returns after the
    session was cleared or replaced is dropped (SessionChanged) instead of
    reviving it.
  - Server bodies that are not the expected JSON surface as ApiError, like
    any other rejected call.
  - Expiry timestamps are epoch milliseconds computed on the client as
    now + expiresIn. Client/server clock skew is accepted.

Renewal deduplication:
  ensure_refreshed() keeps one shared asyncio.Task for the renewal in
  flight. Every caller that needs a fresh access token while it runs awaits
  that same task, so at most one refresh request is ever outstanding. The
  task clears the slot itself once it has settled.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from client.errors import (
    ApiError,
    AuthClientError,
    NetworkError,
    NoRefreshToken,
    SessionChanged,
    error_from_response,
    malformed_response,
)
from client.storage import SessionStorage

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/auth/"
REGISTER_PATH = "/api/auth/register"
LOGIN_PATH = "/api/auth/login"
REFRESH_PATH = "/api/auth/refresh-token"
LOGOUT_PATH = "/api/auth/logout"

STORAGE_KEY = "auth-store"

# Used when a server response omits refreshExpiresIn.
DEFAULT_REFRESH_TTL_MS = 7 * 24 * 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _fmt_ms(value: int | None) -> str:
    if value is None:
        return "never"
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()


class AuthSession:

    def __init__(
            self,
            http: httpx.AsyncClient,
            storage: SessionStorage | None = None,
            clock: Callable[[], int] | None = None,
    ) -> None:
        self._http = http
        self.storage = storage
        self._clock = clock or _now_ms

        self.user: dict[str, Any] | None = None
        self.access_token: str | None = None
        self.refresh_token: str | None = None
        self.access_expires_at: int | None = None
        self.refresh_expires_at: int | None = None

        self._refresh_task: asyncio.Task | None = None
        self._epoch = 0

    # ── Derived state ─────────────────────────────────────────────────────

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def now(self) -> int:
        return self._clock()

    def access_expired(self) -> bool:
        return self.access_expires_at is not None and self.now() > self.access_expires_at

    def refresh_expired(self) -> bool:
        return self.refresh_expires_at is not None and self.now() > self.refresh_expires_at

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    # ── State transitions ─────────────────────────────────────────────────

    def apply_auth_response(self, body: dict[str, Any], email: str | None = None) -> None:
        """
        Stores a token response from register / login / refresh-token.

        Every value is computed before any field is assigned; a malformed
        body raises ApiError with the session untouched.
        """
        now = self.now()
        try:
            access_token = body["accessToken"]
            refresh_token = body["refreshToken"]
            if not isinstance(access_token, str) or not isinstance(refresh_token, str):
                raise TypeError("token values must be strings")

            expires_in = body.get("expiresIn")
            access_expires_at = now + int(expires_in) if expires_in else None

            refresh_expires_in = body.get("refreshExpiresIn")
            if refresh_expires_in:
                refresh_expires_at = now + int(refresh_expires_in)
            else:
                refresh_expires_at = now + DEFAULT_REFRESH_TTL_MS
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Malformed token response: {e!r}") from e

        user = {"email": email} if email else self.user

        (
            self.user,
            self.access_token,
            self.refresh_token,
            self.access_expires_at,
            self.refresh_expires_at,
        ) = (user, access_token, refresh_token, access_expires_at, refresh_expires_at)
        self._epoch += 1
        self._persist()

        logger.info(
            "Token stored; access expires %s, refresh expires %s",
            _fmt_ms(self.access_expires_at),
            _fmt_ms(self.refresh_expires_at),
        )

    def clear(self) -> None:
        """Drops the user and both tokens in one step."""
        (
            self.user,
            self.access_token,
            self.refresh_token,
            self.access_expires_at,
            self.refresh_expires_at,
        ) = (None, None, None, None, None)
        self._epoch += 1
        self._persist()

    def to_dict(self) -> dict[str, Any]:
        """The persisted subset of the session. is_authenticated is derived."""
        return {
            "user": self.user,
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "accessExpiresAt": self.access_expires_at,
            "refreshExpiresAt": self.refresh_expires_at,
        }

    def restore(self) -> bool:
        """
        Reloads the session from storage. Returns True if a stored session
        with an access token was found.
        """
        if self.storage is None:
            return False
        data = self.storage.load(STORAGE_KEY)
        if not data:
            return False

        user = data.get("user")
        (
            self.user,
            self.access_token,
            self.refresh_token,
            self.access_expires_at,
            self.refresh_expires_at,
        ) = (
            user if isinstance(user, dict) else None,
            data.get("accessToken"),
            data.get("refreshToken"),
            data.get("accessExpiresAt"),
            data.get("refreshExpiresAt"),
        )
        self._epoch += 1
        logger.debug("Session restored (authenticated=%s)", self.is_authenticated)
        return self.is_authenticated

    def _persist(self) -> None:
        if self.storage is not None:
            self.storage.save(STORAGE_KEY, self.to_dict())

    # ── Server calls ──────────────────────────────────────────────────────

    async def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http.post(path, json=body)
        except httpx.HTTPError as e:
            raise NetworkError(f"POST {path} failed: {e}") from e

        if response.is_error:
            raise error_from_response(response)
        try:
            result = response.json()
        except ValueError as e:
            raise malformed_response(response, "body is not JSON") from e
        if not isinstance(result, dict):
            raise malformed_response(response, "body is not a JSON object")
        return result

    async def register(self, email: str, password: str, name: str | None = None) -> None:
        """
        Creates an account and signs in.

        Raises:
            ValidationError: email or password missing
            EmailTaken: email already registered
        """
        body: dict[str, Any] = {"email": email, "password": password}
        if name:
            body["name"] = name

        result = await self._post(REGISTER_PATH, body)
        self.apply_auth_response(result, email)

    async def login(self, email: str, password: str) -> None:
        """
        Signs in with email and password.

        Raises:
            ValidationError: email or password missing
            InvalidCredentials: no such user or wrong password
        """
        result = await self._post(LOGIN_PATH, {"email": email, "password": password})
        self.apply_auth_response(result, email)

    async def refresh(self) -> None:
        """
        Exchanges the held refresh token for a new pair.

        Raises NoRefreshToken without contacting the server when no refresh
        token is held. On any other failure the session is cleared first and
        the error re-raised.

        If the session is cleared or replaced (logout, login) while the
        request is out, the new pair is discarded and revoked, the newer
        state is kept, and SessionChanged is raised.
        """
        if not self.refresh_token:
            raise NoRefreshToken()

        epoch = self._epoch
        try:
            result = await self._post(REFRESH_PATH, {"refreshToken": self.refresh_token})
            if self._epoch != epoch:
                await self._discard(result)
                raise SessionChanged()
            self.apply_auth_response(result)
        except SessionChanged:
            raise
        except Exception:
            if self._epoch == epoch:
                self.clear()
            raise

    async def _discard(self, result: dict[str, Any]) -> None:
        logger.info("Session changed during refresh; discarding the new pair")
        token = result.get("refreshToken")
        if not isinstance(token, str) or not token:
            return
        try:
            await self._post(LOGOUT_PATH, {"refreshToken": token})
        except AuthClientError as e:
            logger.warning("Could not revoke discarded refresh token: %s", e)

    async def logout(self) -> None:
        """
        Revokes the refresh token on the server (best effort) and clears the
        session. Never raises.
        """
        token = self.refresh_token
        try:
            if token:
                await self._post(LOGOUT_PATH, {"refreshToken": token})
        except Exception as e:
            logger.error("Logout request failed: %r", e)
        finally:
            self.clear()

    async def ensure_refreshed(self) -> None:
        """
        Deduplicated refresh(). Concurrent callers share one renewal and all
        observe its outcome: the same new pair, or the same exception.
        """
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._run_refresh())
        else:
            logger.debug("Joining refresh already in flight")
        # shield: one cancelled waiter must not cancel the renewal for the rest
        await asyncio.shield(self._refresh_task)

    async def _run_refresh(self) -> None:
        try:
            await self.refresh()
        finally:
            self._refresh_task = None
