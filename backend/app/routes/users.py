# backend/app/routes/users.py
from flask import Blueprint, g, jsonify

from backend.app.extensions import db
from backend.app.middleware.auth_middleware import require_auth
from backend.app.services import auth_service
from backend.app.stores.credential_store import SqlCredentialStore

users_bp = Blueprint("users", __name__)


@users_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """GET /api/me — Profile of the access token's owner."""
    result = auth_service.get_current_user(
        user_id=g.user_id,
        users=SqlCredentialStore(db.session),
    )
    return jsonify(result), 200
