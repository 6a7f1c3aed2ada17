"""
Application configuration: environment-aware settings.

All environment variables are documented here. See .env.example for a template.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    JSON_SORT_KEYS = False

    # Upload limits (syllabus / question paper text)
    MAX_CONTENT_LENGTH = 8 * 1024 * 1024  # 8 MB

    # AI provider key (GEMINI_API_KEY accepted as an alias)
    GOOGLE_API_KEY = os.environ.get("GOOGLE_API_KEY", "") or os.environ.get("GEMINI_API_KEY", "")

    # Storage
    DATA_DIR = os.environ.get("DATA_DIR", str(BASE_DIR / "data"))
    STATE_DIR = os.environ.get("STATE_DIR", str(Path(DATA_DIR) / "states"))
    SYLLABUS_DIR = os.environ.get("SYLLABUS_DIR", str(Path(DATA_DIR) / "syllabuses"))
    QUIZ_CACHE_PATH = os.environ.get("QUIZ_CACHE_PATH", str(Path(DATA_DIR) / "quiz_cache.json"))

    # Planning
    INITIAL_BATCH_DAYS = int(os.environ.get("INITIAL_BATCH_DAYS", "15"))
    CONTINUATION_BATCH_DAYS = int(os.environ.get("CONTINUATION_BATCH_DAYS", "30"))
    QUIZ_FACTORY_INTERVAL_SECONDS = int(os.environ.get("QUIZ_FACTORY_INTERVAL_SECONDS", "20"))
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") not in ("0", "false", "no")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Redis (quiz cache, background jobs, rate limits)
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"
    AI_RATE_LIMIT = os.environ.get("AI_RATE_LIMIT", "30 per minute")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.CONTINUATION_BATCH_DAYS <= 0 or cls.INITIAL_BATCH_DAYS <= 0:
            errors.append("INITIAL_BATCH_DAYS and CONTINUATION_BATCH_DAYS must be positive.")

        if not cls.GOOGLE_API_KEY:
            warnings.warn("GOOGLE_API_KEY is not set; AI features will be unavailable.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    GOOGLE_API_KEY = "test-key"
    RATELIMIT_ENABLED = False


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
