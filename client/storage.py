"""
client/storage.py — Durable key-value slot for the client session.

A SessionStorage keeps one JSON-serialisable dict per key. AuthSession
writes its persisted fields under "auth-store" after every change and reads
them back on restore(). Pass storage=None to AuthSession when there is no
durable storage (non-interactive runs); nothing is persisted then.

The session holds a refresh token, which is a bearer credential, so the
durable backings never write it in clear:

  KeyringStorage        — the system keyring (Secret Service, Keychain, ...)
  EncryptedFileStorage  — one Fernet-encrypted file, mode 0600

resolve_encryption_key() picks the file key: an explicit key, else the one
kept in the keyring, else a key file next to the session file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import keyring
from cryptography.fernet import Fernet, InvalidToken
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "authflow-client"
_KEY_ENTRY = "encryption_key"


class SessionStorageError(Exception):
    """The durable slot could not be read or written."""


class SessionStorage(ABC):

    @abstractmethod
    def load(self, key: str) -> dict[str, Any] | None:
        """Return the stored dict for `key`, or None."""

    @abstractmethod
    def save(self, key: str, value: dict[str, Any]) -> None:
        """Replace the stored dict for `key`."""


class MemoryStorage(SessionStorage):

    def __init__(self) -> None:
        self._slots: dict[str, dict[str, Any]] = {}

    def load(self, key: str) -> dict[str, Any] | None:
        value = self._slots.get(key)
        return dict(value) if value is not None else None

    def save(self, key: str, value: dict[str, Any]) -> None:
        self._slots[key] = dict(value)


class KeyringStorage(SessionStorage):
    """One keyring entry per key, holding the dict as JSON."""

    def __init__(self, service_name: str = DEFAULT_SERVICE_NAME) -> None:
        self.service_name = service_name

    def load(self, key: str) -> dict[str, Any] | None:
        try:
            raw = keyring.get_password(self.service_name, key)
        except KeyringError as e:
            raise SessionStorageError(f"Keyring read failed: {e}") from e
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable keyring entry %s/%s", self.service_name, key)
            return None
        return value if isinstance(value, dict) else None

    def save(self, key: str, value: dict[str, Any]) -> None:
        try:
            keyring.set_password(self.service_name, key, json.dumps(value))
        except KeyringError as e:
            raise SessionStorageError(f"Keyring write failed: {e}") from e


class EncryptedFileStorage(SessionStorage):
    """
    All keys live in one Fernet-encrypted JSON file. Writes go through a
    temp file + rename and leave the file readable by the owner only.
    """

    def __init__(self, path: Path, key: bytes) -> None:
        self.path = Path(path)
        self._fernet = Fernet(key)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            plaintext = self._fernet.decrypt(self.path.read_bytes())
            data = json.loads(plaintext)
        except (OSError, InvalidToken, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s: %r", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def load(self, key: str) -> dict[str, Any] | None:
        value = self._read_all().get(key)
        return value if isinstance(value, dict) else None

    def save(self, key: str, value: dict[str, Any]) -> None:
        data = self._read_all()
        data[key] = value
        _write_private(self.path, self._fernet.encrypt(json.dumps(data).encode("utf-8")))


def _write_private(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    # mkstemp creates the file 0600
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except OSError:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def resolve_encryption_key(
        key_file: Path,
        explicit_key: str | bytes | None = None,
        service_name: str = DEFAULT_SERVICE_NAME,
) -> bytes:
    """
    Returns the Fernet key for EncryptedFileStorage.

    Order: `explicit_key`; the key stored in the keyring (created there on
    first use); `key_file`, created 0600 on first use, when no keyring
    backend is usable.
    """
    if explicit_key:
        return explicit_key.encode("ascii") if isinstance(explicit_key, str) else explicit_key

    try:
        stored = keyring.get_password(service_name, _KEY_ENTRY)
        if stored:
            return stored.encode("ascii")
        key = Fernet.generate_key()
        keyring.set_password(service_name, _KEY_ENTRY, key.decode("ascii"))
        logger.info("Session encryption key stored in keyring (%s)", service_name)
        return key
    except KeyringError as e:
        logger.info("Keyring unavailable (%s); using key file %s", e, key_file)

    key_file = Path(key_file)
    if key_file.exists():
        return key_file.read_bytes().strip()
    key = Fernet.generate_key()
    _write_private(key_file, key)
    return key
