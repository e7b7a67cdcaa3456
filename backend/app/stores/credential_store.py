"""
stores/credential_store.py — User record persistence.

Lookup-by-email, lookup-by-id and insert. The store owns id assignment
(monotonic, unique); callers never pick ids.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from backend.app.models.user import User


@dataclass(frozen=True)
class UserRecord:
    id: int
    email: str
    password_hash: str
    name: str


class CredentialStore(ABC):
    """Keyed storage for user credentials."""

    @abstractmethod
    def find_by_email(self, email: str) -> UserRecord | None:
        """Return the user registered under `email`, or None."""

    @abstractmethod
    def get(self, user_id: int) -> UserRecord | None:
        """Return the user with `user_id`, or None."""

    @abstractmethod
    def insert(self, email: str, password_hash: str, name: str) -> UserRecord:
        """Create a user and return it with its assigned id."""


class InMemoryCredentialStore(CredentialStore):

    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> UserRecord | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return user
        return None

    def get(self, user_id: int) -> UserRecord | None:
        with self._lock:
            return self._users.get(user_id)

    def insert(self, email: str, password_hash: str, name: str) -> UserRecord:
        with self._lock:
            record = UserRecord(self._next_id, email, password_hash, name)
            self._users[record.id] = record
            self._next_id += 1
            return record


def _to_record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        name=user.name,
    )


class SqlCredentialStore(CredentialStore):

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_email(self, email: str) -> UserRecord | None:
        user = self.session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()
        return _to_record(user) if user is not None else None

    def get(self, user_id: int) -> UserRecord | None:
        user = self.session.get(User, user_id)
        return _to_record(user) if user is not None else None

    def insert(self, email: str, password_hash: str, name: str) -> UserRecord:
        user = User(email=email, password_hash=password_hash, name=name)
        self.session.add(user)
        self.session.flush()  # populate user.id
        return _to_record(user)
