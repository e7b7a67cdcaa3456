"""
stores/token_store.py — Refresh token persistence.

The Renewal Protocol only ever talks to the TokenStore contract:
insert, lookup and delete keyed by the raw token value. Two backings:

  InMemoryTokenStore — dict-backed, used by unit tests and embedded use.
  SqlTokenStore      — refresh_tokens table through a SQLAlchemy session.
                       Flushes only; the route commits.

delete() returns True only when the call removed a live record. Renewal
relies on that to consume a token exactly once even if two requests
present it at the same time.
"""

from __future__ import annotations

import hashlib
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from backend.app.models.refresh_token import RefreshToken


@dataclass(frozen=True)
class RefreshTokenRecord:
    token: str
    owner_id: int
    expires_at: datetime


class TokenStore(ABC):
    """Keyed storage for issued refresh tokens."""

    @abstractmethod
    def insert(self, token: str, owner_id: int, expires_at: datetime) -> None:
        """Persist a newly issued token. Token values are unique."""

    @abstractmethod
    def lookup(self, token: str) -> RefreshTokenRecord | None:
        """Return the live record for `token`, or None."""

    @abstractmethod
    def delete(self, token: str) -> bool:
        """Remove the record for `token`. True if this call removed it."""


class InMemoryTokenStore(TokenStore):

    def __init__(self) -> None:
        self._records: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.Lock()

    def insert(self, token: str, owner_id: int, expires_at: datetime) -> None:
        with self._lock:
            self._records[token] = RefreshTokenRecord(token, owner_id, expires_at)

    def lookup(self, token: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._records.get(token)

    def delete(self, token: str) -> bool:
        with self._lock:
            return self._records.pop(token, None) is not None

    def __len__(self) -> int:
        return len(self._records)


def hash_token(raw_token: str) -> str:
    """SHA-256 hex digest of a raw token string. Used as the table key."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on DateTime(timezone=True) columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlTokenStore(TokenStore):

    def __init__(self, session: Session) -> None:
        self.session = session

    def insert(self, token: str, owner_id: int, expires_at: datetime) -> None:
        self.session.add(RefreshToken(
            user_id=owner_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
        ))
        # flush so the row exists before we return; commit is the route's job
        self.session.flush()

    def lookup(self, token: str) -> RefreshTokenRecord | None:
        row = self.session.execute(
            select(RefreshToken).where(RefreshToken.token_hash == hash_token(token))
        ).scalar_one_or_none()
        if row is None:
            return None
        return RefreshTokenRecord(
            token=token,
            owner_id=row.user_id,
            expires_at=_as_utc(row.expires_at),
        )

    def delete(self, token: str) -> bool:
        result = self.session.execute(
            delete(RefreshToken).where(RefreshToken.token_hash == hash_token(token))
        )
        return result.rowcount == 1
