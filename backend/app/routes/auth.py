"""
routes/auth.py — Authentication route handlers.

Layer rules:
  - Parse request body
  - Validate with the appropriate schema (raises ValidationError on bad input)
  - Call exactly ONE service function
  - Commit the DB session
  - Return the response body as JSON

No business logic here. No DB queries.
AppError propagates to the global error handler in app/__init__.py — routes
never catch it.

Endpoints (url_prefix=/api/auth). These never require an Authorization
header; clients must not send one.
  POST   /register       → 200 token pair
  POST   /login          → 200 token pair
  POST   /refresh-token  → 200 new token pair (rotation)
  POST   /logout         → 200 {"message": "Logout successful"}
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from backend.app.extensions import db
from backend.app.schemas.auth_schema import (
    LoginSchema,
    LogoutSchema,
    RefreshTokenSchema,
    RegisterSchema,
)
from backend.app.services import auth_service, token_service
from backend.app.services.token_service import TokenPolicy
from backend.app.stores.credential_store import SqlCredentialStore
from backend.app.stores.token_store import SqlTokenStore

auth_bp = Blueprint("auth", __name__)


def _policy() -> TokenPolicy:
    return TokenPolicy.from_config(current_app.config)


@auth_bp.route("/register", methods=["POST"])
def register():
    """POST /api/auth/register — Create account; return tokens."""
    data = RegisterSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.register_user(
        email=data["email"],
        password=data["password"],
        name=data["name"],
        users=SqlCredentialStore(db.session),
        tokens=SqlTokenStore(db.session),
        policy=_policy(),
        bcrypt_rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12),
    )
    db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/login", methods=["POST"])
def login():
    """POST /api/auth/login — Authenticate; return tokens."""
    data = LoginSchema().load(request.get_json(force=True, silent=True) or {})
    result = auth_service.login_user(
        email=data["email"],
        password=data["password"],
        users=SqlCredentialStore(db.session),
        tokens=SqlTokenStore(db.session),
        policy=_policy(),
    )
    db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/refresh-token", methods=["POST"])
def refresh_token():
    """POST /api/auth/refresh-token — Consume a refresh token for a new pair."""
    data = RefreshTokenSchema().load(request.get_json(force=True, silent=True) or {})
    try:
        result = token_service.renew(
            data["refresh_token"],
            store=SqlTokenStore(db.session),
            policy=_policy(),
        )
    finally:
        # An expired token is deleted before TOKEN_EXPIRED is raised; that
        # deletion has to persist.
        db.session.commit()
    return jsonify(result), 200


@auth_bp.route("/logout", methods=["POST"])
def logout():
    """POST /api/auth/logout — Revoke refresh token. Always succeeds."""
    data = LogoutSchema().load(request.get_json(force=True, silent=True) or {})
    token_service.revoke(data["refresh_token"], SqlTokenStore(db.session))
    db.session.commit()
    return jsonify({"message": "Logout successful"}), 200
