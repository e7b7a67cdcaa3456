"""
schemas/auth_schema.py — Marshmallow schemas for authentication endpoints.

Validation responsibility:
  - This file: presence and type of fields. Wire names are camelCase
    (data_key); loaded dicts use snake_case.
  - services/auth_service.py: EMAIL_TAKEN and INVALID_CREDENTIALS
    (require a store lookup — not a schema concern).

An empty string counts as a missing field.

IMPORTANT: All schemas inherit from marshmallow.Schema directly.
           Do NOT use ma.Schema — it requires an active Flask app context
           and breaks unit tests. See extensions.py for the full explanation.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from backend.app.errors import ErrorCode

_non_empty = validate.Length(min=1, error=ErrorCode.MISSING_FIELD)


class _AuthSchema(Schema):
    class Meta:
        unknown = EXCLUDE


class RegisterSchema(_AuthSchema):
    """
    POST /api/auth/register

    name is optional; the service defaults it to the email local part.
    """

    email = fields.Str(required=True, validate=_non_empty)
    password = fields.Str(required=True, load_only=True, validate=_non_empty)
    name = fields.Str(load_default=None, allow_none=True)


class LoginSchema(_AuthSchema):
    """POST /api/auth/login"""

    email = fields.Str(required=True, validate=_non_empty)
    password = fields.Str(required=True, load_only=True, validate=_non_empty)


class RefreshTokenSchema(_AuthSchema):
    """
    POST /api/auth/refresh-token

    Token validity (unknown, consumed, expired) is checked in
    token_service.renew().
    """

    refresh_token = fields.Str(
        required=True,
        data_key="refreshToken",
        validate=_non_empty,
    )


class LogoutSchema(_AuthSchema):
    """POST /api/auth/logout — the token is optional; absent means no-op."""

    refresh_token = fields.Str(
        data_key="refreshToken",
        load_default=None,
        allow_none=True,
    )
