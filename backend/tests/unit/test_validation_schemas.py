"""
tests/unit/test_validation_schemas.py — Unit tests for the auth schemas.

What this file proves:
  - Every schema accepts valid input without raising
  - Missing or empty fields are rejected with MISSING_FIELD
  - camelCase wire names load into snake_case keys
  - Unknown fields are dropped, not rejected

No database, no Flask application context: schemas inherit from
marshmallow.Schema directly (see extensions.py).
"""

from __future__ import annotations

import pytest
from marshmallow import ValidationError

from backend.app.errors import ErrorCode
from backend.app.schemas.auth_schema import (
    LoginSchema,
    LogoutSchema,
    RefreshTokenSchema,
    RegisterSchema,
)


def _codes(exc: ValidationError) -> dict:
    return {field: messages[0] for field, messages in exc.messages.items()}


# ═══════════════════════════════════════════════════════════════════════════
# RegisterSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestRegisterSchema:

    def test_valid_input_loads(self):
        data = RegisterSchema().load({
            "email": "a@test.com", "password": "pw", "name": "Alice",
        })
        assert data == {"email": "a@test.com", "password": "pw", "name": "Alice"}

    def test_name_is_optional(self):
        data = RegisterSchema().load({"email": "a@test.com", "password": "pw"})
        assert data["name"] is None

    def test_missing_password_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load({"email": "a@test.com"})
        assert "password" in exc_info.value.messages

    @pytest.mark.parametrize("field", ["email", "password"])
    def test_empty_string_is_missing(self, field):
        payload = {"email": "a@test.com", "password": "pw", field: ""}
        with pytest.raises(ValidationError) as exc_info:
            RegisterSchema().load(payload)
        assert _codes(exc_info.value)[field] == ErrorCode.MISSING_FIELD

    def test_unknown_fields_are_excluded(self):
        data = RegisterSchema().load({
            "email": "a@test.com", "password": "pw", "role": "admin",
        })
        assert "role" not in data


# ═══════════════════════════════════════════════════════════════════════════
# LoginSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestLoginSchema:

    def test_valid_input_loads(self):
        data = LoginSchema().load({"email": "test@local", "password": "1234"})
        assert data == {"email": "test@local", "password": "1234"}

    def test_empty_body_reports_both_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            LoginSchema().load({})
        assert set(exc_info.value.messages) == {"email", "password"}

    def test_password_is_never_dumped(self):
        assert "password" not in LoginSchema().dump({"email": "x", "password": "y"})


# ═══════════════════════════════════════════════════════════════════════════
# RefreshTokenSchema / LogoutSchema
# ═══════════════════════════════════════════════════════════════════════════

class TestRefreshTokenSchema:

    def test_camel_case_key_loads_to_snake_case(self):
        data = RefreshTokenSchema().load({"refreshToken": "abc"})
        assert data == {"refresh_token": "abc"}

    def test_missing_token_rejected_under_wire_name(self):
        with pytest.raises(ValidationError) as exc_info:
            RefreshTokenSchema().load({})
        assert "refreshToken" in exc_info.value.messages

    def test_empty_token_is_missing(self):
        with pytest.raises(ValidationError) as exc_info:
            RefreshTokenSchema().load({"refreshToken": ""})
        assert _codes(exc_info.value)["refreshToken"] == ErrorCode.MISSING_FIELD

    def test_snake_case_key_is_not_accepted(self):
        with pytest.raises(ValidationError):
            RefreshTokenSchema().load({"refresh_token": "abc"})


class TestLogoutSchema:

    def test_token_is_optional(self):
        assert LogoutSchema().load({}) == {"refresh_token": None}

    def test_null_token_allowed(self):
        assert LogoutSchema().load({"refreshToken": None}) == {"refresh_token": None}

    def test_token_loads(self):
        assert LogoutSchema().load({"refreshToken": "abc"}) == {"refresh_token": "abc"}
