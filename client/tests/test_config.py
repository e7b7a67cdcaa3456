"""Unit tests for ClientSettings.from_env()."""

from pathlib import Path

from client.config import ClientSettings


class TestFromEnv:

    def test_defaults(self, monkeypatch):
        for name in (
            "AUTH_API_BASE",
            "AUTH_LANDING_PATH",
            "AUTH_SESSION_FILE",
            "AUTH_SESSION_KEY",
            "AUTH_SESSION_KEYRING",
            "AUTH_HTTP_TIMEOUT",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = ClientSettings.from_env()

        assert settings.api_base == "http://localhost:8080"
        assert settings.landing_path == "/"
        assert settings.session_file is None
        assert settings.use_keyring is False
        assert settings.timeout == 30.0

    def test_empty_api_base_falls_back_to_local_server(self, monkeypatch):
        monkeypatch.setenv("AUTH_API_BASE", "")
        assert ClientSettings.from_env().api_base == "http://localhost:8080"

    def test_session_settings(self, monkeypatch, tmp_path):
        monkeypatch.setenv("AUTH_SESSION_FILE", str(tmp_path / "session.bin"))
        monkeypatch.setenv("AUTH_SESSION_KEY", "k" * 44)
        monkeypatch.setenv("AUTH_SESSION_KEYRING", "yes")

        settings = ClientSettings.from_env()

        assert settings.session_file == Path(tmp_path / "session.bin")
        assert settings.session_key == "k" * 44
        assert settings.use_keyring is True

    def test_bad_timeout_uses_default(self, monkeypatch):
        monkeypatch.setenv("AUTH_HTTP_TIMEOUT", "soon")
        assert ClientSettings.from_env().timeout == 30.0
