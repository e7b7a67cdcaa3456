"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (LOG_LEVEL)
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Create tables / seed the demo account when the config asks for it
  5. Register route blueprints under /api
  6. Register global error handlers (AppError → JSON, Exception → 500)

Run locally:
    flask --app "backend.app:create_app('development')" run --port 8080
"""

from __future__ import annotations

import logging
import traceback

from flask import Flask, jsonify, request
from marshmallow import ValidationError

from backend.config import config_by_name, validate_production_config


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from backend.app.models import refresh_token, user  # noqa: F401

        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()

        if app.config.get("SEED_DEMO_USER"):
            _seed_demo_user(app)

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)
    # Service modules log under "backend.app.*".
    logging.getLogger("backend.app").setLevel(level)


def _seed_demo_user(app: Flask) -> None:
    from backend.app.extensions import db
    from backend.app.services import auth_service
    from backend.app.stores.credential_store import SqlCredentialStore

    user = auth_service.seed_demo_user(
        SqlCredentialStore(db.session),
        bcrypt_rounds=app.config.get("BCRYPT_LOG_ROUNDS", 12),
    )
    db.session.commit()
    app.logger.info("Demo account %s available (id=%s)", user.email, user.id)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    auth_bp owns the unauthenticated /api/auth/* endpoints; everything else
    lives outside that prefix and requires a bearer token.
    """
    from backend.app.routes.auth import auth_bp
    from backend.app.routes.users import users_bp

    app.register_blueprint(auth_bp,  url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD responses (400)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.
        """
        if error.http_status == 401:
            app.logger.info("%s %s → %s", request.method, request.path, error.code)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST field error is reported. If the message is itself a
        registered ErrorCode (schemas use ErrorCode.MISSING_FIELD for empty
        strings) it is used as the code; marshmallow's own "Missing data for
        required field." also maps to MISSING_FIELD; anything else is
        INVALID_FIELD.
        """
        messages = error.messages  # e.g. {"email": ["Missing data for required field."]}

        field = None
        raw_message = "Invalid input."
        code = ErrorCode.INVALID_FIELD

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None

                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)

                code = _classify_message(raw_message)
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."
            code = _classify_message(raw_message)

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in vars(ErrorCode).values()
                else _code_to_message(code, field),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        HTTP exceptions raised by Flask itself (404, 405) keep their status.
        """
        from werkzeug.exceptions import HTTPException

        if isinstance(error, HTTPException):
            return jsonify({
                "error": {
                    "code": error.name.upper().replace(" ", "_"),  # e.g. NOT_FOUND
                    "message": error.description,
                }
            }), error.code

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a client served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _classify_message(raw_message) -> str:
    from backend.app.errors import ErrorCode

    if raw_message in vars(ErrorCode).values():
        return raw_message
    if str(raw_message).startswith("Missing data for required field"):
        return ErrorCode.MISSING_FIELD
    return ErrorCode.INVALID_FIELD


def _code_to_message(code: str, field: str | None) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    if code == "MISSING_FIELD" and field:
        return f"'{field}' is required."
    _messages = {
        "MISSING_FIELD": "A required field is missing.",
    }
    return _messages.get(code, "Invalid input.")
