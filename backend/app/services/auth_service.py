"""
services/auth_service.py — Authentication business logic.

Responsibilities:
  - User registration and credential validation
  - Password hashing (bcrypt) and verification
  - Handing authenticated users to token_service for a token pair
  - Demo account seeding for development and testing

Layer rules:
  - No imports from routes or schemas
  - No use of flask.request, flask.g, or HTTP status codes
  - Storage arrives as CredentialStore / TokenStore, configuration as a
    TokenPolicy, so every function runs without an app context.

Password storage:
  - Hashed with bcrypt (cost factor from config BCRYPT_LOG_ROUNDS)
  - Raw password is never stored, never logged
"""

from __future__ import annotations

import logging

import bcrypt

from backend.app.errors import AppError, ErrorCode
from backend.app.services import token_service
from backend.app.services.token_service import TokenPolicy
from backend.app.stores.credential_store import CredentialStore, UserRecord
from backend.app.stores.token_store import TokenStore

logger = logging.getLogger(__name__)

DEMO_EMAIL = "test@local"
DEMO_PASSWORD = "1234"
DEMO_NAME = "Test User"


# ── Private helpers ────────────────────────────────────────────────────────

def _hash_password(password: str, rounds: int) -> str:
    return bcrypt.hashpw(
        password.encode("utf-8"),
        bcrypt.gensalt(rounds=rounds),
    ).decode("utf-8")


def _default_name(email: str) -> str:
    return email.split("@", 1)[0]


def _build_user_dict(user: UserRecord) -> dict:
    """Serialises a user to a plain dict. No business logic."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
    }


# ── Public service functions ───────────────────────────────────────────────

def register_user(
        email: str,
        password: str,
        name: str | None,
        users: CredentialStore,
        tokens: TokenStore,
        policy: TokenPolicy,
        bcrypt_rounds: int = 12,
) -> dict:
    """
    Creates a new user account and issues an access + refresh token pair.

    Raises:
      AppError(EMAIL_TAKEN, 400) — email already registered

    Returns: token_service.issue() response body.
    """
    if users.find_by_email(email) is not None:
        raise AppError(
            ErrorCode.EMAIL_TAKEN,
            "Email already exists.",
            400,
            field="email",
        )

    user = users.insert(
        email=email,
        password_hash=_hash_password(password, bcrypt_rounds),
        name=name or _default_name(email),
    )
    logger.info("Registered user %s", user.id)

    return token_service.issue(user.id, user.email, tokens, policy)


def login_user(
        email: str,
        password: str,
        users: CredentialStore,
        tokens: TokenStore,
        policy: TokenPolicy,
) -> dict:
    """
    Validates credentials and issues a new access + refresh token pair.

    Raises:
      AppError(INVALID_CREDENTIALS, 401) — email not found or password wrong.
      Uses the same error for both to avoid email enumeration.

    Returns: token_service.issue() response body.
    """
    user = users.find_by_email(email)

    # bcrypt.checkpw compares in constant time.
    if user is None or not bcrypt.checkpw(
            password.encode("utf-8"),
            user.password_hash.encode("utf-8"),
    ):
        raise AppError(
            ErrorCode.INVALID_CREDENTIALS,
            "Invalid email or password.",
            401,
        )

    return token_service.issue(user.id, user.email, tokens, policy)


def get_current_user(user_id: int, users: CredentialStore) -> dict:
    """
    Returns the profile of the currently authenticated user.

    Raises:
      AppError(USER_NOT_FOUND, 404) — the token owner no longer exists.
    """
    user = users.get(user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} not found.",
            404,
        )
    return _build_user_dict(user)


def seed_demo_user(users: CredentialStore, bcrypt_rounds: int = 12) -> UserRecord:
    """Ensures the test@local / 1234 demo account exists. Idempotent."""
    existing = users.find_by_email(DEMO_EMAIL)
    if existing is not None:
        return existing
    return users.insert(
        email=DEMO_EMAIL,
        password_hash=_hash_password(DEMO_PASSWORD, bcrypt_rounds),
        name=DEMO_NAME,
    )
