# backend/warehouse_control/config.py
from __future__ import annotations
import os


# RFC 7518 3.2: an HS256 key is at least as long as the hash output
MIN_JWT_SECRET_BYTES = 32


class ConfigError(RuntimeError):
    """Raised at startup when required settings are missing or malformed."""


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Token signing secret; read once at startup, rotation requires a restart
    JWT_SECRET = os.environ.get("JWT_SECRET", "")
    JWT_EXP_HOURS = _env_int("JWT_EXP_HOURS", 24)

    # SQLite DB stored in backend/instance/warehouse.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///warehouse.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Retry policy for persistence calls
    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_BACKOFF = _env_float("DB_RETRY_BACKOFF", 0.1)

    HISTORY_DEFAULT_LIMIT = _env_int("HISTORY_DEFAULT_LIMIT", 100)
    HISTORY_EXPORT_LIMIT = _env_int("HISTORY_EXPORT_LIMIT", 1000)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    JWT_SECRET = "test-jwt-secret-0123456789abcdef-0123456789abcdef"
    JWT_EXP_HOURS = 1
    DB_RETRY_ATTEMPTS = 1
    DB_RETRY_BACKOFF = 0.0
    LOG_LEVEL = "WARNING"


def validate_config(config) -> None:
    """
    Fail fast on settings the auth layer cannot run without.

    Accepts a Flask config mapping (or any dict-like object).
    """
    secret = config.get("JWT_SECRET")
    if not secret or not str(secret).strip():
        raise ConfigError("JWT_SECRET is required")
    if len(str(secret).encode("utf-8")) < MIN_JWT_SECRET_BYTES:
        raise ConfigError(f"JWT_SECRET must be at least {MIN_JWT_SECRET_BYTES} bytes")

    exp_hours = config.get("JWT_EXP_HOURS")
    if isinstance(exp_hours, bool) or not isinstance(exp_hours, int) or exp_hours <= 0:
        raise ConfigError("JWT_EXP_HOURS must be a positive integer")

    attempts = config.get("DB_RETRY_ATTEMPTS", 1)
    if not isinstance(attempts, int) or attempts < 1:
        raise ConfigError("DB_RETRY_ATTEMPTS must be >= 1")
