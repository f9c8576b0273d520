"""Application configuration objects."""

from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from typing import Any, Type

from sqlalchemy.pool import NullPool


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


def _env_list(name: str, default: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in os.getenv(name, default).split(",") if item.strip())


class BaseConfig:
    """Shared defaults across all environments."""

    APP_NAME = "IELTS AI Practice"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite+pysqlite:///ielts_dev.db",
    )
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change_me")
    JWT_TOKEN_LOCATION = ("headers",)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        seconds=int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_SEC", "43200"))
    )

    GEMINI_API_BASE = os.getenv(
        "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
    GEMINI_TEXT_MODELS = _env_list(
        "GEMINI_TEXT_MODELS",
        "gemini-2.5-flash,gemini-2.5-pro,gemini-2.0-flash,gemini-2.0-flash-lite",
    )
    GEMINI_TTS_MODEL = os.getenv("GEMINI_TTS_MODEL", "gemini-2.5-flash-preview-tts")
    GEMINI_IMAGE_MODEL = os.getenv(
        "GEMINI_IMAGE_MODEL", "gemini-2.0-flash-preview-image-generation"
    )
    GEMINI_TEMPERATURE = float(os.getenv("GEMINI_TEMPERATURE", "0.7"))
    GEMINI_MAX_OUTPUT_TOKENS = int(os.getenv("GEMINI_MAX_OUTPUT_TOKENS", "8192"))
    AI_CONNECT_TIMEOUT_SEC = int(os.getenv("AI_CONNECT_TIMEOUT_SEC", "15"))
    AI_READ_TIMEOUT_SEC = int(os.getenv("AI_READ_TIMEOUT_SEC", "120"))

    TTS_MAX_ATTEMPTS = int(os.getenv("TTS_MAX_ATTEMPTS", "3"))
    TTS_BACKOFF_BASE_SEC = float(os.getenv("TTS_BACKOFF_BASE_SEC", "1.0"))
    TTS_SAMPLE_RATE = int(os.getenv("TTS_SAMPLE_RATE", "24000"))

    WRITING_TEMPERATURE = float(os.getenv("WRITING_TEMPERATURE", "0.2"))
    WRITING_MAX_OUTPUT_TOKENS = int(os.getenv("WRITING_MAX_OUTPUT_TOKENS", "2048"))
    WRITING_MAX_ATTEMPTS = int(os.getenv("WRITING_MAX_ATTEMPTS", "3"))
    LISTENING_DEFAULT_DURATION_SEC = int(os.getenv("LISTENING_DEFAULT_DURATION_SEC", "240"))

    GEMINI_FREE_DAILY_LIMIT = int(os.getenv("GEMINI_FREE_DAILY_LIMIT", "1500000"))
    QUOTA_WARNING_RATIO = float(os.getenv("QUOTA_WARNING_RATIO", "0.8"))
    PRACTICE_SERVE_PUBLISHED = _env_flag("PRACTICE_SERVE_PUBLISHED", "true")

    APP_ENCRYPTION_KEY = os.getenv("APP_ENCRYPTION_KEY", "")
    MEDIA_ROOT = os.getenv("MEDIA_ROOT", "")
    MEDIA_URL_SECRET = os.getenv("MEDIA_URL_SECRET") or JWT_SECRET_KEY
    MEDIA_URL_SALT = os.getenv("MEDIA_URL_SALT", "practice-media")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    RATE_LIMIT_DEFAULTS = [limit.strip() for limit in os.getenv("RATE_LIMIT_DEFAULTS", "200 per minute;1000 per day").split(";") if limit.strip()]
    RATE_LIMIT_GENERATE = os.getenv("RATE_LIMIT_GENERATE", "10 per minute")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    JSON_SORT_KEYS = False
    AUTO_CREATE_SCHEMA = _env_flag("AUTO_CREATE_SCHEMA", "true")
    SQLITE_TIMEOUT_SEC = int(os.getenv("SQLITE_TIMEOUT_SEC", "15"))
    if SQLALCHEMY_DATABASE_URI.startswith("sqlite"):
        SQLALCHEMY_ENGINE_OPTIONS = {
            "poolclass": NullPool,
            "connect_args": {"timeout": SQLITE_TIMEOUT_SEC, "check_same_thread": False},
        }
    else:
        SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_pre_ping": True,
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        }


class DevConfig(BaseConfig):
    DEBUG = True


class ProdConfig(BaseConfig):
    DEBUG = False


class TestConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite+pysqlite:///:memory:"
    SQLALCHEMY_ENGINE_OPTIONS: dict[str, Any] = {}
    JWT_SECRET_KEY = "test-secret"
    MEDIA_URL_SECRET = "test-media-secret"
    APP_ENCRYPTION_KEY = "test-encryption-key-0123456789abcdef"
    GEMINI_API_KEY = ""
    TTS_BACKOFF_BASE_SEC = 0.0
    RATE_LIMIT_GENERATE = "1000 per minute"
    AUTO_CREATE_SCHEMA = False


CONFIG_ALIASES: dict[str, Type[BaseConfig]] = {
    "dev": DevConfig,
    "development": DevConfig,
    "prod": ProdConfig,
    "production": ProdConfig,
    "test": TestConfig,
    "testing": TestConfig,
}


@lru_cache
def resolve_config(name_or_class: Any) -> Any:
    """Resolve config argument to the object expected by `app.config.from_object`."""

    if name_or_class is None:
        return DevConfig
    if isinstance(name_or_class, str):
        return CONFIG_ALIASES.get(name_or_class, name_or_class)
    return name_or_class
