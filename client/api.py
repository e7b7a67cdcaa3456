"""
client/api.py — Authenticated HTTP client (request guard).

ApiClient wraps an httpx.AsyncClient for calls to protected endpoints:

  1. Requests outside /api/auth/ carry "Authorization: Bearer <access token>"
     when the session holds one. /api/auth/ requests never do.
  2. A 401/403 on a protected call renews the token through
     AuthSession.ensure_refreshed() (one renewal shared by all concurrent
     callers) and retries the call exactly once.
  3. If renewal fails the session is logged out, the router is sent to the
     landing page, and the ORIGINAL 401/403 is raised to the caller.
  4. A retried call that fails with 401/403 again is not retried.
  5. A renewal overtaken by logout or login (SessionChanged) is not a
     failure: the call is retried once with whatever the session now holds.

Usage:
    api = ApiClient(http, session, router)
    profile = (await api.get("/api/me")).json()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from client.errors import AuthClientError, NetworkError, SessionChanged, error_from_response
from client.session import AUTH_PREFIX, AuthSession

if TYPE_CHECKING:
    from client.router import Router

logger = logging.getLogger(__name__)

RENEWABLE_STATUSES = (401, 403)


def is_auth_endpoint(url: str | httpx.URL) -> bool:
    return AUTH_PREFIX in str(url)


class ApiClient:

    def __init__(
            self,
            http: httpx.AsyncClient,
            session: AuthSession,
            router: Router | None = None,
            landing_path: str = "/",
    ) -> None:
        self.http = http
        self.session = session
        self.router = router
        self.landing_path = landing_path

    def _headers_for(self, url: str, headers: dict[str, str] | None) -> tuple[dict[str, str], str | None]:
        """Returns the request headers and the access token they carry."""
        headers = dict(headers or {})
        if is_auth_endpoint(url):
            headers.pop("Authorization", None)
            return headers, None

        token = self.session.access_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers, token

    async def _send(self, method: str, url: str, headers: dict[str, str], **kwargs: Any) -> httpx.Response:
        try:
            return await self.http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            raise NetworkError(f"{method} {url} failed: {e}") from e

    async def request(
            self,
            method: str,
            url: str,
            *,
            headers: dict[str, str] | None = None,
            _is_retry: bool = False,
            **kwargs: Any,
    ) -> httpx.Response:
        """
        Sends a request through the guard.

        Returns the response for 2xx/3xx statuses. Raises ApiError (or the
        subclass matching the server's error code) otherwise, and
        NetworkError when the server is unreachable.
        """
        request_headers, sent_token = self._headers_for(url, headers)
        response = await self._send(method, url, request_headers, **kwargs)

        if (
            response.status_code in RENEWABLE_STATUSES
            and not is_auth_endpoint(url)
            and not _is_retry
        ):
            return await self._renew_and_retry(method, url, headers, sent_token, response, **kwargs)

        if response.is_error:
            raise error_from_response(response)
        return response

    async def _renew_and_retry(
            self,
            method: str,
            url: str,
            headers: dict[str, str] | None,
            sent_token: str | None,
            response: httpx.Response,
            **kwargs: Any,
    ) -> httpx.Response:
        current = self.session.access_token
        if current is not None and current != sent_token:
            # Another caller renewed while this request was in flight.
            logger.debug("%s %s rejected with a superseded token; retrying", method, url)
        else:
            try:
                await self.session.ensure_refreshed()
            except SessionChanged:
                # Logged out or re-logged in meanwhile; the retry carries
                # whatever the session holds now.
                logger.debug("%s %s: session changed during renewal; retrying", method, url)
            except AuthClientError as e:
                logger.warning("Token renewal failed (%r); signing out", e)
                await self._force_logout()
                raise error_from_response(response) from e

        return await self.request(method, url, headers=headers, _is_retry=True, **kwargs)

    async def _force_logout(self) -> None:
        await self.session.logout()
        if self.router is not None and self.router.current_path != self.landing_path:
            await self.router.push(self.landing_path)

    # ── Convenience verbs ─────────────────────────────────────────────────

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)
