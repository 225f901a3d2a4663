import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'navhub.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MAX_CONTENT_LENGTH = 1024 * 1024

    AUTH_ENABLED = _env_flag("AUTH_ENABLED", "1")
    AUTH_USERNAME = os.environ.get("AUTH_USERNAME", "")
    AUTH_PASSWORD = os.environ.get("AUTH_PASSWORD", "")
    AUTH_SECRET = os.environ.get("AUTH_SECRET", "default-secret")
    AUTH_REQUIRED_FOR_READ = _env_flag("AUTH_REQUIRED_FOR_READ", "0")
    AUTH_COOKIE_SECURE = _env_flag("AUTH_COOKIE_SECURE", "1")
    TOKEN_TTL_SECONDS = int(os.environ.get("TOKEN_TTL_SECONDS", str(7 * 24 * 3600)))
    REMEMBER_ME_TTL_SECONDS = int(
        os.environ.get("REMEMBER_ME_TTL_SECONDS", str(30 * 24 * 3600))
    )
    PASSWORD_HASH_METHOD = os.environ.get("PASSWORD_HASH_METHOD", "scrypt:32768:8:1")

    LOGIN_MAX_ATTEMPTS = int(os.environ.get("LOGIN_MAX_ATTEMPTS", "5"))
    LOGIN_WINDOW_MINUTES = int(os.environ.get("LOGIN_WINDOW_MINUTES", "15"))

    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "0")
    THROTTLE_CLEANUP_INTERVAL_MINUTES = int(
        os.environ.get("THROTTLE_CLEANUP_INTERVAL_MINUTES", "15")
    )


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    AUTH_ENABLED = True
    AUTH_USERNAME = "admin"
    AUTH_PASSWORD = ""
    AUTH_SECRET = "test-secret"
    AUTH_REQUIRED_FOR_READ = False
    AUTH_COOKIE_SECURE = False
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
