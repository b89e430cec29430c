"""
Configuration classes for the app factory.

    app.config.from_object(config[os.getenv("APP_ENV", "development")]())

Everything is read from the environment at import time; ProductionConfig
refuses to start without DATABASE_URL and SECRET_KEY.
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'wfconfig_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _database_url(env_var: str, default: str | None) -> str | None:
    """Read a database URL; hosted Postgres still hands out ``postgres://``."""
    raw = os.getenv(env_var, "")
    if not raw:
        return default
    return raw.replace("postgres://", "postgresql://", 1)


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_hex(32))
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Flask-Limiter; only the save endpoints are tight
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    SAVE_RATE_LIMIT = os.getenv("SAVE_RATE_LIMIT", "30/minute")
    READ_RATE_LIMIT = os.getenv("READ_RATE_LIMIT", "200/minute")

    # Overrides LOG_LEVEL for wfconfig.engine.* only
    ENGINE_LOG_LEVEL = os.getenv("ENGINE_LOG_LEVEL")

    # Catalogue JSON used by `flask seed-catalog` when no file is given
    CATALOG_JSON = os.getenv("CATALOG_JSON")

    # Remote configuration service (ConfigApiGateway.from_app_config)
    WORKFLOW_CONFIG_API_URL = os.getenv("WORKFLOW_CONFIG_API_URL", "http://localhost:5000/api/v1/workflow-config")
    WORKFLOW_CONFIG_API_TIMEOUT = int(os.getenv("WORKFLOW_CONFIG_API_TIMEOUT", "30"))
    WORKFLOW_CONFIG_API_TOKEN = os.getenv("WORKFLOW_CONFIG_API_TOKEN")

    # Stamped as updated_by on rows saved through the REST API
    WORKFLOW_CONFIG_UPDATED_BY = os.getenv("WORKFLOW_CONFIG_UPDATED_BY", "system")


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", _SQLITE_DEV)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}
    RATELIMIT_ENABLED = False
    WORKFLOW_CONFIG_UPDATED_BY = "system"


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url("DATABASE_URL", None)
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    ENGINE_LOG_LEVEL = os.getenv("ENGINE_LOG_LEVEL", "INFO")

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
