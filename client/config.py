"""
client/config.py — Client settings resolved from the environment.

    AUTH_API_BASE         server base URL           (default http://localhost:8080)
    AUTH_LANDING_PATH     unauthenticated landing   (default /)
    AUTH_SESSION_FILE     encrypted session file    (unset: session not persisted)
    AUTH_SESSION_KEY      Fernet key for that file  (unset: keyring, then <file>.key)
    AUTH_SESSION_KEYRING  keep the session in the system keyring instead of a file
    AUTH_HTTP_TIMEOUT     seconds per request       (default 30)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class ClientSettings:
    api_base: str = "http://localhost:8080"
    landing_path: str = "/"
    session_file: Path | None = None
    session_key: str | None = None
    use_keyring: bool = False
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "ClientSettings":
        session_file = os.getenv("AUTH_SESSION_FILE") or None
        try:
            timeout = float(os.getenv("AUTH_HTTP_TIMEOUT", "30"))
        except ValueError:
            timeout = 30.0
        return cls(
            # Unset or empty falls back to the local development server.
            api_base=os.getenv("AUTH_API_BASE") or cls.api_base,
            landing_path=os.getenv("AUTH_LANDING_PATH") or cls.landing_path,
            session_file=Path(session_file).expanduser() if session_file else None,
            session_key=os.getenv("AUTH_SESSION_KEY") or None,
            use_keyring=os.getenv("AUTH_SESSION_KEYRING", "").strip().lower()
            in ("1", "true", "yes", "on"),
            timeout=timeout,
        )
