"""
client/errors.py — Exceptions raised by the authflow client.

Server error envelopes ({"error": {"code", "message"}}) are mapped back to
the exception classes below by error code, so callers can tell a bad
password from a consumed refresh token without inspecting HTTP statuses.
"""

from __future__ import annotations

import httpx


class AuthClientError(Exception):
    """Base exception for client errors."""

    def __init__(
            self,
            message: str,
            status_code: int | None = None,
            code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"status_code={self.status_code}, "
            f"message={self.message!r})"
        )


class ApiError(AuthClientError):
    """Any non-2xx response without a more specific mapping."""

    def __init__(
            self,
            message: str,
            status_code: int | None = None,
            code: str | None = None,
            response: httpx.Response | None = None,
    ) -> None:
        super().__init__(message, status_code, code)
        self.response = response


class ValidationError(ApiError):
    """Missing or malformed request fields (400)."""


class EmailTaken(ApiError):
    """Registration with an email that already exists (400)."""


class InvalidCredentials(ApiError):
    """Login email/password mismatch (401)."""


class InvalidToken(ApiError):
    """Refresh token unknown or already consumed (401)."""


class TokenExpired(ApiError):
    """Refresh token known but past its expiry (401)."""


class NetworkError(AuthClientError):
    """The server could not be reached."""


class NoRefreshToken(AuthClientError):
    """refresh() called with no refresh token held. Never reaches the server."""

    def __init__(self) -> None:
        super().__init__("No refresh token")


class SessionChanged(AuthClientError):
    """The session was cleared or replaced while a refresh was in flight."""

    def __init__(self) -> None:
        super().__init__("Session changed during refresh")


_ERRORS_BY_CODE: dict[str, type[ApiError]] = {
    "MISSING_FIELD":         ValidationError,
    "INVALID_FIELD":         ValidationError,
    "EMAIL_TAKEN":           EmailTaken,
    "INVALID_CREDENTIALS":   InvalidCredentials,
    "REFRESH_TOKEN_INVALID": InvalidToken,
    "REFRESH_TOKEN_EXPIRED": TokenExpired,
}


def malformed_response(response: httpx.Response, detail: str) -> ApiError:
    """A response whose status looked fine but whose body is unusable."""
    return ApiError(
        f"Malformed response from {response.request.url.path}: {detail}",
        status_code=response.status_code,
        response=response,
    )


def error_from_response(response: httpx.Response) -> ApiError:
    """Builds the exception matching an error response's code."""
    code = None
    message = f"HTTP {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        code = body["error"].get("code")
        message = body["error"].get("message") or message

    error_class = _ERRORS_BY_CODE.get(code, ApiError)
    return error_class(
        message,
        status_code=response.status_code,
        code=code,
        response=response,
    )
