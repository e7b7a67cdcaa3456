"""
Unit tests for errors.py: every registered code is one the app can emit.
"""

from __future__ import annotations

from pathlib import Path

from backend.app.errors import AppError, ErrorCode

APP_DIR = Path(__file__).resolve().parents[2] / "app"


def _codes() -> dict[str, str]:
    return {
        name: value for name, value in vars(ErrorCode).items()
        if name.isupper() and isinstance(value, str)
    }


def _app_sources() -> str:
    return "\n".join(
        path.read_text(encoding="utf-8")
        for path in APP_DIR.rglob("*.py")
        if path.name != "errors.py"
    )


class TestErrorCodeRegistry:

    def test_every_code_is_raised_somewhere(self):
        sources = _app_sources()
        unused = [name for name in _codes() if f"ErrorCode.{name}" not in sources]
        assert unused == []

    def test_no_forbidden_code(self):
        assert "FORBIDDEN" not in _codes()

    def test_code_values_match_names(self):
        for name, value in _codes().items():
            assert name == value

    def test_app_error_carries_code_and_status(self):
        error = AppError(ErrorCode.TOKEN_EXPIRED, "Access token expired", 401)
        assert error.code == "TOKEN_EXPIRED"
        assert error.http_status == 401
