"""Application configuration module."""

import enum
from typing import List

from pydantic import BaseSettings, validator


class ScoringPolicy(str, enum.Enum):
    """How a correct answer is weighted when an attempt is scored."""
    FLAT = "flat"          # every question is worth one point
    WEIGHTED = "weighted"  # a question is worth its configured points


class StorageBackend(str, enum.Enum):
    """Where aggregates are persisted."""
    MEMORY = "memory"
    SQL = "sql"


class Settings(BaseSettings):
    """Application settings."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./examforge.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    STORAGE_BACKEND: StorageBackend = StorageBackend.MEMORY
    AUTO_DB_INIT: bool = False  # create missing tables at startup

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # API settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "ExamForge Assessments"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Attempt engine settings
    SCORING_POLICY: ScoringPolicy = ScoringPolicy.FLAT
    GRADE_AGAINST_LIVE_QUESTIONS: bool = False
    TIME_LIMIT_GRACE_SECONDS: int = 0  # accept calls this long past the limit
    ATTEMPT_CONFLICT_RETRIES: int = 2
    CONFLICT_RETRY_DELAY: float = 0.05
    QUICK_ANSWER_SECONDS: int = 30
    SLOW_ANSWER_SECONDS: int = 90
    DEFAULT_PASSING_SCORE: int = 70

    @validator("LOG_LEVEL")
    def validate_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()

    @validator("SLOW_ANSWER_SECONDS")
    def validate_time_buckets(cls, v, values):
        """The slow threshold must not be below the quick threshold"""
        quick = values.get("QUICK_ANSWER_SECONDS")
        if quick is not None and v < quick:
            raise ValueError("SLOW_ANSWER_SECONDS must be >= QUICK_ANSWER_SECONDS")
        return v

    class Config:
        """Pydantic settings config."""
        env_file = ".env"
        case_sensitive = True

# Create global settings instance
settings = Settings()
