"""
services/token_service.py — Token issuance and the renewal protocol.

Responsibilities:
  - issue():  mint an access token (JWT, short-lived) and a refresh token
              (opaque, long-lived), persist the refresh token.
  - renew():  exchange a refresh token for a brand-new pair. Refresh tokens
              are single-use: the presented record is deleted before the new
              pair is issued, so replaying it always fails.
  - revoke(): logout. Deletes the refresh token if it exists.
  - decode_access_token(): verify an access token for @require_auth.

Layer rules:
  - No Flask imports. Configuration arrives as a TokenPolicy, storage as a
    TokenStore. Routes build both from current_app.
  - No HTTP status handling beyond the AppError codes raised here.

Token lifetimes (response fields are milliseconds):
  - Access token:  policy.access_ttl  (10 min default)
  - Refresh token: policy.refresh_ttl (20 min default; deliberately short
                   so rotation is observable, deployments should use days)

Access tokens are never stored server-side. Their validity is the signature
plus the exp claim; logout and rotation only touch refresh tokens.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Mapping

import jwt

from backend.app.errors import AppError, ErrorCode
from backend.app.stores.token_store import TokenStore

logger = logging.getLogger(__name__)

TOKEN_TYPE = "Bearer"


@dataclass(frozen=True)
class TokenPolicy:
    secret_key: str
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(minutes=10)
    refresh_ttl: timedelta = timedelta(minutes=20)

    @classmethod
    def from_config(cls, config: Mapping) -> "TokenPolicy":
        return cls(
            secret_key=config["JWT_SECRET_KEY"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            access_ttl=config["JWT_ACCESS_TOKEN_EXPIRES"],
            refresh_ttl=config["JWT_REFRESH_TOKEN_EXPIRES"],
        )


@dataclass(frozen=True)
class AccessClaims:
    owner_id: int
    email: str | None
    expires_at: datetime


def _utcnow() -> datetime:
    """Service clock. Tests monkeypatch this to move time."""
    return datetime.now(timezone.utc)


def _millis(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


# ── Private helpers ────────────────────────────────────────────────────────

def _create_access_token(
        owner_id: int,
        email: str | None,
        policy: TokenPolicy,
        now: datetime,
) -> str:
    """
    Creates a signed JWT access token.
    Payload: sub (owner id as str), email (when known), iat, exp, jti.
    """
    payload = {
        "sub": str(owner_id),
        "iat": now,
        "exp": now + policy.access_ttl,
        # Guarantees each issued token is unique even if generated in the same second.
        "jti": secrets.token_hex(8),
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, policy.secret_key, algorithm=policy.algorithm)


# ── Public service functions ───────────────────────────────────────────────

def issue(
        owner_id: int,
        email: str | None,
        store: TokenStore,
        policy: TokenPolicy,
        now: datetime | None = None,
) -> dict:
    """
    Mints a new access + refresh token pair for `owner_id`.

    Only call after the caller has authenticated the owner. Never fails.

    Returns: {"accessToken", "refreshToken", "tokenType", "expiresIn",
              "refreshExpiresIn"} with both lifetimes in milliseconds.
    """
    now = now or _utcnow()

    refresh_token = secrets.token_urlsafe(32)
    store.insert(refresh_token, owner_id, now + policy.refresh_ttl)

    return {
        "accessToken": _create_access_token(owner_id, email, policy, now),
        "refreshToken": refresh_token,
        "tokenType": TOKEN_TYPE,
        "expiresIn": _millis(policy.access_ttl),
        "refreshExpiresIn": _millis(policy.refresh_ttl),
    }


def renew(
        presented_token: str,
        store: TokenStore,
        policy: TokenPolicy,
        now: datetime | None = None,
) -> dict:
    """
    Rotates a refresh token: consumes `presented_token` and issues a new pair.

    Raises:
      AppError(REFRESH_TOKEN_INVALID, 401) — unknown or already consumed.
      AppError(REFRESH_TOKEN_EXPIRED, 401) — known but past expiry. The
        record is deleted before raising.

    Returns: same shape as issue().
    """
    now = now or _utcnow()

    record = store.lookup(presented_token)
    if record is None:
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "Invalid refresh token.",
            401,
        )

    if now > record.expires_at:
        store.delete(presented_token)
        logger.info("Expired refresh token for user %s deleted", record.owner_id)
        raise AppError(
            ErrorCode.REFRESH_TOKEN_EXPIRED,
            "Refresh token expired.",
            401,
        )

    # Consume first. A concurrent renewal that got here with the same token
    # loses the delete and must fail like a replay.
    if not store.delete(presented_token):
        raise AppError(
            ErrorCode.REFRESH_TOKEN_INVALID,
            "Invalid refresh token.",
            401,
        )

    logger.debug("Refresh token rotated for user %s", record.owner_id)
    return issue(record.owner_id, None, store, policy, now=now)


def revoke(presented_token: str | None, store: TokenStore) -> None:
    """Deletes a refresh token. Missing or unknown tokens are a no-op."""
    if not presented_token:
        return
    if store.delete(presented_token):
        logger.debug("Refresh token revoked")


def decode_access_token(
        raw_token: str,
        policy: TokenPolicy,
        now: datetime | None = None,
) -> AccessClaims:
    """
    Verifies the signature of an access token and checks its exp claim
    against the service clock.

    Raises:
      AppError(TOKEN_EXPIRED, 401) — valid token, exp in the past.
      AppError(TOKEN_INVALID, 401) — bad signature, malformed, bad claims.
    """
    now = now or _utcnow()

    try:
        # exp is checked below against _utcnow() so every server-side
        # expiry decision uses the same clock.
        payload = jwt.decode(
            raw_token,
            policy.secret_key,
            algorithms=[policy.algorithm],
            options={
                "verify_exp": False,
                "verify_iat": False,
                "require": ["sub", "exp"],
            },
        )
    except jwt.InvalidTokenError:
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid or has been tampered with.",
            401,
        )

    try:
        owner_id = int(payload["sub"])
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token carries malformed claims.",
            401,
        )

    if now >= expires_at:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Use POST /api/auth/refresh-token to obtain a new one.",
            401,
        )

    return AccessClaims(
        owner_id=owner_id,
        email=payload.get("email"),
        expires_at=expires_at,
    )
