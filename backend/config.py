import os
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv


_BACKEND_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _BACKEND_DIR.parent

# Root .env is canonical; backend/.env remains a fallback for local overrides.
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(_BACKEND_DIR / ".env")


def _first_non_empty_env(*names: str, default: str) -> str:
    """Returns the first non-empty env var value from `names`, else `default`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _parse_int_env(*names: str, default: int) -> int:
    """Parses the first non-empty env var in `names` as int, else returns `default`."""
    raw = _first_non_empty_env(*names, default=str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _access_ttl_seconds() -> int:
    """
    Resolves access-token TTL in seconds.

    Preferred var:
      JWT_ACCESS_TOKEN_EXPIRES (seconds)

    Alias:
      JWT_ACCESS_TOKEN_EXPIRES_MINUTES (minutes)
    """
    if os.getenv("JWT_ACCESS_TOKEN_EXPIRES"):
        return _parse_int_env("JWT_ACCESS_TOKEN_EXPIRES", default=600)

    if os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MINUTES"):
        minutes = _parse_int_env("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", default=10)
        return minutes * 60

    return 600


def _refresh_ttl_seconds() -> int:
    """
    Resolves refresh-token TTL in seconds.

    The 20 minute default keeps rotation observable during development.
    Deployments should raise it to days.

    Preferred var:
      JWT_REFRESH_TOKEN_EXPIRES (seconds)

    Alias:
      JWT_REFRESH_TOKEN_EXPIRES_MINUTES (minutes)
    """
    if os.getenv("JWT_REFRESH_TOKEN_EXPIRES"):
        return _parse_int_env("JWT_REFRESH_TOKEN_EXPIRES", default=1200)

    if os.getenv("JWT_REFRESH_TOKEN_EXPIRES_MINUTES"):
        minutes = _parse_int_env("JWT_REFRESH_TOKEN_EXPIRES_MINUTES", default=20)
        return minutes * 60

    return 1200


class BaseConfig:

    # Flask/session secret. Falls back to JWT_SECRET_KEY for compatibility.
    SECRET_KEY: str = _first_non_empty_env(
        "SECRET_KEY",
        "JWT_SECRET_KEY",
        default="change-me-in-production",
    )

    # Access-token signing secret. Falls back to SECRET_KEY.
    JWT_SECRET_KEY: str = _first_non_empty_env(
        "JWT_SECRET_KEY",
        "SECRET_KEY",
        default="change-me-in-production",
    )

    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    JSON_SORT_KEYS: bool = False
    JWT_ACCESS_TOKEN_EXPIRES:  timedelta = timedelta(
        seconds=_access_ttl_seconds()  # default: 10 min
    )
    JWT_REFRESH_TOKEN_EXPIRES: timedelta = timedelta(
        seconds=_refresh_ttl_seconds()  # default: 20 min
    )
    JWT_ALGORITHM: str = "HS256"
    BCRYPT_LOG_ROUNDS: int = 12

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Creates tables at startup instead of running Alembic. Dev/test only.
    AUTO_CREATE_TABLES: bool = False

    # Ensures the test@local demo account exists at startup.
    SEED_DEMO_USER: bool = False


class DevelopmentConfig(BaseConfig):
    DEBUG:   bool = True
    TESTING: bool = False

    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + str(_PROJECT_ROOT / "authflow-dev.db"),
    )
    SQLALCHEMY_ECHO: bool = False

    AUTO_CREATE_TABLES: bool = True
    SEED_DEMO_USER: bool = _parse_bool_env("SEED_DEMO_USER", True)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):

    DEBUG:   bool = True
    TESTING: bool = True

    # In-memory SQLite; each app instance gets a fresh database.
    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "TEST_DATABASE_URL",
        "sqlite:///:memory:",
    )
    SQLALCHEMY_ECHO: bool = False

    # Default lifetimes are kept so response bodies carry the documented
    # 600000 / 1200000 ms values. Tests move the service clock instead.
    JWT_ACCESS_TOKEN_EXPIRES:  timedelta = timedelta(minutes=10)
    JWT_REFRESH_TOKEN_EXPIRES: timedelta = timedelta(minutes=20)
    JWT_SECRET_KEY: str = "testing-secret-key-with-enough-bytes-for-hs256"

    BCRYPT_LOG_ROUNDS: int = 4

    AUTO_CREATE_TABLES: bool = True
    SEED_DEMO_USER: bool = True


class ProductionConfig(BaseConfig):

    DEBUG:   bool = False
    TESTING: bool = False
    SQLALCHEMY_ECHO: bool = False

    # Resolve at class definition time (import time).
    # Heroku / Render return 'postgres://' which SQLAlchemy 1.4+ rejects;
    # normalise to 'postgresql://'.
    _raw_db_url: str = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI: str = (
        _raw_db_url.replace("postgres://", "postgresql://", 1)
        if _raw_db_url.startswith("postgres://")
        else _raw_db_url
    )


def validate_production_config(app) -> None:
    """
    Fail-fast guard for production configuration.

    Must be called in the app factory immediately after
    app.config.from_object(ProductionConfig):

        app.config.from_object(ProductionConfig)
        validate_production_config(app)   # raises ValueError if misconfigured

    Raises ValueError if any required production value is missing or insecure.
    """
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        raise ValueError(
            "DATABASE_URL environment variable is required in production. "
            "Set it to a valid PostgreSQL connection string."
        )
    if app.config.get("SECRET_KEY") == "change-me-in-production":
        raise ValueError(
            "SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if app.config.get("JWT_SECRET_KEY") == "change-me-in-production":
        raise ValueError(
            "JWT_SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if app.config.get("SEED_DEMO_USER"):
        raise ValueError(
            "SEED_DEMO_USER must not be enabled in production: the demo "
            "account has a well-known password."
        )


# ── Config selector ────────────────────────────────────────────────────────
#
# Used by the app factory:
#   from backend.config import config_by_name
#   app.config.from_object(config_by_name[flask_env])
# ──────────────────────────────────────────────────────────────────────────

config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing":     TestingConfig,
    "production":  ProductionConfig,
}
