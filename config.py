"""Environment-driven configuration.

Values are read once at import time (after loading a local .env file) and copied
into ``app.config`` by ``create_app``. Tests override them with ``test_config``.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if not url:
        if os.getenv("RENDER") == "true":
            raise RuntimeError("DATABASE_URL missing on Render; refusing to use SQLite.")
        url = "sqlite:///engagement.db"
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def is_production() -> bool:
    return bool(os.getenv("RENDER")) or os.getenv("FLASK_ENV") == "production"


# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Rate limiting (set RATE_LIMIT_STORAGE_URL to a Redis URL when running several instances)
RATE_LIMIT_STORAGE_URL: str = os.getenv("RATE_LIMIT_STORAGE_URL", "memory://")
RATE_LIMIT_DEFAULTS: list[str] = [
    part.strip() for part in os.getenv("RATE_LIMIT_DEFAULTS", "1000 per hour").split(";") if part.strip()
]

# Admin routes are disabled while this is empty.
ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "").strip()

# Headers populated by the upstream identity provider.
IDENTITY_USER_HEADER: str = os.getenv("IDENTITY_USER_HEADER", "X-User-Id")
IDENTITY_NAME_HEADER: str = os.getenv("IDENTITY_NAME_HEADER", "X-User-Name")
IDENTITY_EMAIL_HEADER: str = os.getenv("IDENTITY_EMAIL_HEADER", "X-User-Email")

# Read-path deadlines
READ_TIMEOUT_MS: int = _int_env("READ_TIMEOUT_MS", 5000)

# Feed / history / pagination bounds
FEED_DEFAULT_LIMIT: int = _int_env("FEED_DEFAULT_LIMIT", 10)
FEED_MAX_LIMIT: int = _int_env("FEED_MAX_LIMIT", 100)
ACTIVITY_DEFAULT_LIMIT: int = _int_env("ACTIVITY_DEFAULT_LIMIT", 10)
COMMENTS_DEFAULT_PAGE_SIZE: int = _int_env("COMMENTS_DEFAULT_PAGE_SIZE", 10)
COMMENTS_MAX_PAGE_SIZE: int = _int_env("COMMENTS_MAX_PAGE_SIZE", 100)


def as_flask_config() -> dict:
    """Settings in the shape ``app.config.update`` expects."""
    secret_key = os.getenv("SECRET_KEY") or os.getenv("FLASK_SECRET_KEY") or "dev-secret-key-change-me"
    if is_production() and secret_key.startswith("dev-secret-key-change"):
        raise RuntimeError("SECRET_KEY must be set to a strong random value in production.")

    return {
        "SECRET_KEY": secret_key,
        "SQLALCHEMY_DATABASE_URI": database_url(),
        "SQLALCHEMY_ENGINE_OPTIONS": {"pool_recycle": 300, "pool_pre_ping": True},
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "RATELIMIT_ENABLED": True,
        "ADMIN_API_KEY": ADMIN_API_KEY,
        "IDENTITY_USER_HEADER": IDENTITY_USER_HEADER,
        "IDENTITY_NAME_HEADER": IDENTITY_NAME_HEADER,
        "IDENTITY_EMAIL_HEADER": IDENTITY_EMAIL_HEADER,
        "READ_TIMEOUT_MS": READ_TIMEOUT_MS,
        "FEED_DEFAULT_LIMIT": FEED_DEFAULT_LIMIT,
        "FEED_MAX_LIMIT": FEED_MAX_LIMIT,
        "ACTIVITY_DEFAULT_LIMIT": ACTIVITY_DEFAULT_LIMIT,
        "COMMENTS_DEFAULT_PAGE_SIZE": COMMENTS_DEFAULT_PAGE_SIZE,
        "COMMENTS_MAX_PAGE_SIZE": COMMENTS_MAX_PAGE_SIZE,
    }
