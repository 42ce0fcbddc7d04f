"""
Core REST API
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

from coreapi.core.constants import (
    DEFAULT_STATUS_TRANSITIONS,
    DISALLOWED_UPDATE_STATUSES,
    RESTRICTED_STATUSES,
)

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'coreapi_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False

    SERVICE_TITLE = os.getenv("SERVICE_TITLE", "Core REST API")
    SERVICE_VERSION = os.getenv("SERVICE_VERSION", "1.0.0")

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
    }

    # MongoDB mirror (disabled when MONGODB_URI is empty)
    MONGODB_URI = os.getenv("MONGODB_URI", "")
    MONGODB_DATABASE = os.getenv("MONGODB_DATABASE", "coreapi")
    MONGODB_TIMEOUT_MS = int(os.getenv("MONGODB_TIMEOUT_MS", "2000"))

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # JWT bearer auth (tokens are issued elsewhere)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_AUDIENCE = os.getenv("JWT_AUDIENCE") or None
    JWT_ISSUER = os.getenv("JWT_ISSUER") or None
    JWT_SKIP_PREFIXES = ("/api/v1/health",)
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    SUPERADMIN_ROLE = os.getenv("SUPERADMIN_ROLE", "superadmin")

    # i18n
    LANGUAGES = ("en", "id")
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "en")

    # Change-log stamps (UTC)
    TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

    # Search
    PAGE_SIZE = int(os.getenv("PAGE_SIZE", "10"))
    SORT_DIR = "desc"

    # Record lifecycle
    STATUS_TRANSITIONS = DEFAULT_STATUS_TRANSITIONS
    RESTRICTED_STATUSES = RESTRICTED_STATUSES
    DISALLOWED_UPDATE_STATUSES = DISALLOWED_UPDATE_STATUSES
    PRIVILEGED_RESTORE_STATUSES = None   # None: any status except Deleted
    # table -> fields that may not change while other rows reference the record
    DEPENDENCIES_UPDATE = {
        "example": ("name", "status"),
    }


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-key-with-32-bytes!"
    # Auth disabled in test environment
    API_AUTH_ENABLED = "false"
    MONGODB_URI = ""


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Heroku-style URLs use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
