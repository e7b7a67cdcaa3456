"""
middleware/auth_middleware.py — Bearer access-token authentication decorator.

The @require_auth decorator:
  1. Reads the Authorization header (expected: "Bearer <token>")
  2. Verifies the access token via token_service.decode_access_token
     (signature + exp against the service clock)
  3. Attaches user_id (int) to flask.g for the duration of the request
  4. Raises the appropriate 401 error if any step fails

Strict responsibility boundary:
  - This middleware authenticates and attaches user_id to flask.g ONLY.
  - Services receive user_id as a plain integer argument, with no knowledge
    of tokens or HTTP headers.

Error codes:
  TOKEN_MISSING  (401) — no Authorization header
  TOKEN_INVALID  (401) — malformed header, invalid signature, or bad payload
  TOKEN_EXPIRED  (401) — valid token but exp claim is in the past

Every failure here is a 401, which is what makes clients renew their
access token and retry.
"""

from __future__ import annotations

import functools
from typing import Callable

from flask import current_app, g, request

from backend.app.errors import AppError, ErrorCode
from backend.app.services import token_service
from backend.app.services.token_service import TokenPolicy


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that enforces access-token authentication.

    Attaches the authenticated user's ID to flask.g.user_id.
    Raises AppError for all auth failures — the global error handler converts
    these to the correct JSON response. Routes never catch AppError.

    Usage:
        @users_bp.route("/me")
        @require_auth
        def me():
            user_id = g.user_id  # always an int when this runs
            ...
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _authenticate_request() -> None:
    """
    Performs the full authentication sequence and sets flask.g.user_id.

    Raises AppError on any authentication failure (never returns a response
    directly — error propagates to the global Flask error handler).
    """
    auth_header = request.headers.get("Authorization", "")

    # ── Step 1: Require Authorization header ──────────────────────────────
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    # ── Step 2: Parse "Bearer <token>" format ─────────────────────────────
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )

    # ── Step 3: Verify the token ──────────────────────────────────────────
    claims = token_service.decode_access_token(
        parts[1],
        TokenPolicy.from_config(current_app.config),
    )

    # ── Step 4: Attach user_id to flask.g ─────────────────────────────────
    g.user_id = claims.owner_id
