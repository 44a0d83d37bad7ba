"""
QA Portal settings.

Every value can be overridden from the environment. APP_ENV picks the class:

    app.config.from_object(config[os.getenv("APP_ENV", "development")])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
instance_dir = os.path.join(basedir, "instance")

# Per-process fallback; tokens issued by a dev server die with it
_EPHEMERAL_SECRET = secrets.token_hex(32)


def _env_int(name, default):
    return int(os.getenv(name, str(default)))


def _env_database_url():
    """DATABASE_URL with the legacy postgres:// scheme rewritten for SQLAlchemy 2."""
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url or None


class Config:
    """Values shared by every environment."""

    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY", _EPHEMERAL_SECRET)
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Auth: "false" lets anonymous callers through require_auth
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", SECRET_KEY)
    JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", JWT_SECRET_KEY)
    JWT_ACCESS_EXPIRES = _env_int("JWT_ACCESS_EXPIRES", 15 * 60)
    JWT_REFRESH_EXPIRES = _env_int("JWT_REFRESH_EXPIRES", 7 * 24 * 3600)

    # Test case / defect attachments
    UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(basedir, "uploads"))
    MAX_FILE_SIZE_MB = _env_int("MAX_FILE_SIZE_MB", 200)
    MAX_CONTENT_LENGTH = MAX_FILE_SIZE_MB * 1024 * 1024

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _env_database_url() or (
        "sqlite:///" + os.path.join(instance_dir, "qa_portal_dev.db")
    )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    JWT_SECRET_KEY = "test-access-secret"
    JWT_REFRESH_SECRET_KEY = "test-refresh-secret"
    # Auth tests switch this back on per test
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    """Instantiated (not just referenced) so missing env vars fail at boot."""

    SQLALCHEMY_DATABASE_URI = _env_database_url()
    # No wildcard default outside development
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        **Config.SQLALCHEMY_ENGINE_OPTIONS,
        "pool_size": _env_int("DB_POOL_SIZE", 5),
        "max_overflow": 10,
        "pool_recycle": 300,
    }

    def __init__(self):
        missing = [
            name
            for name, present in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            )
            if not present
        ]
        if missing:
            raise RuntimeError(f"{missing[0]} environment variable is required in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
