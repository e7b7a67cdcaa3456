"""
client/router.py — Client-side navigation and the auth route guard.

Router keeps the current path and a history stack. Guards are registered
for path prefixes and run before every navigation into a matching path; a
guard returns None to let the navigation through or a Redirect to abort it
and go elsewhere.

AuthRouteGuard decides per navigation:

  not authenticated                     → Redirect(landing)
  refresh token expired                 → logout, Redirect(landing, replace)
  access token expired, refresh valid   → renew inline; on failure logout,
                                          Redirect(landing, replace)
  access token valid                    → proceed

A replace redirect overwrites the current history entry so going back does
not land on the protected page again.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from client.errors import AuthClientError, SessionChanged
from client.session import AuthSession

logger = logging.getLogger(__name__)

MAX_REDIRECTS = 5


@dataclass(frozen=True)
class Redirect:
    path: str
    replace: bool = False


Guard = Callable[[str, str], Awaitable["Redirect | None"]]


class NavigationError(Exception):
    """Guards redirected more than MAX_REDIRECTS times in one navigation."""


class Router:

    def __init__(self, initial_path: str = "/") -> None:
        self.history: list[str] = [initial_path]
        self._guards: list[tuple[str, Guard]] = []

    @property
    def current_path(self) -> str:
        return self.history[-1]

    def use(self, guard: Guard, prefixes: tuple[str, ...] | list[str]) -> None:
        """Runs `guard(to, from)` before navigating to any path under `prefixes`."""
        for prefix in prefixes:
            self._guards.append((prefix, guard))

    async def push(self, path: str) -> bool:
        return await self._navigate(path, replace=False)

    async def replace(self, path: str) -> bool:
        return await self._navigate(path, replace=True)

    def back(self) -> str:
        if len(self.history) > 1:
            self.history.pop()
        return self.current_path

    async def _navigate(self, path: str, replace: bool) -> bool:
        """
        Returns True if `path` was reached, False if a guard redirected the
        navigation somewhere else.
        """
        target, target_replace = path, replace
        for _ in range(MAX_REDIRECTS + 1):
            redirect = await self._run_guards(target)
            if redirect is None:
                self._commit(target, target_replace)
                return target == path
            logger.info("Navigation to %s redirected to %s", target, redirect.path)
            target, target_replace = redirect.path, redirect.replace

        raise NavigationError(f"Too many redirects navigating to {path}")

    async def _run_guards(self, to_path: str) -> Redirect | None:
        from_path = self.current_path
        for prefix, guard in self._guards:
            if _matches(to_path, prefix):
                redirect = await guard(to_path, from_path)
                if redirect is not None:
                    return redirect
        return None

    def _commit(self, path: str, replace: bool) -> None:
        if replace:
            self.history[-1] = path
        elif path != self.current_path:
            self.history.append(path)


def _matches(path: str, prefix: str) -> bool:
    if prefix == "/":
        return True
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


class AuthRouteGuard:
    """
    Protects routes that need a signed-in user. Register with
    router.use(guard, ["/dashboard", ...]); never register it for the
    landing path itself.

    client_side=False turns the guard into a pass-through for contexts
    without client-held session state (server-side rendering).
    """

    def __init__(
            self,
            session: AuthSession,
            landing_path: str = "/",
            client_side: bool = True,
    ) -> None:
        self.session = session
        self.landing_path = landing_path
        self.client_side = client_side

    async def __call__(self, to_path: str, from_path: str) -> Redirect | None:
        if not self.client_side:
            return None

        session = self.session

        if not session.is_authenticated:
            logger.info("Not authenticated; redirecting %s to %s", to_path, self.landing_path)
            return Redirect(self.landing_path)

        if session.refresh_expired():
            logger.info("Refresh token expired; forcing logout")
            await session.logout()
            return Redirect(self.landing_path, replace=True)

        if session.access_expired():
            logger.info("Access token expired; renewing before entering %s", to_path)
            try:
                await session.ensure_refreshed()
            except SessionChanged:
                if not session.is_authenticated:
                    return Redirect(self.landing_path, replace=True)
                logger.debug("Session replaced during renewal; entering %s", to_path)
            except AuthClientError as e:
                logger.error("Renewal failed: %r", e)
                await session.logout()
                return Redirect(self.landing_path, replace=True)

        return None
