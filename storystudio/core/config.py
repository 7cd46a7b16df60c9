"""
Application Configuration
Loads settings from environment variables.
"""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache


DEFAULT_TRIGGER_URL = "http://localhost:5678/webhook/generate-storybook"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    APP_NAME: str = "Storybook Studio API"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Job Store - SQLite for local dev, PostgreSQL for production
    DATABASE_URL: str = "sqlite:///./storystudio.db"

    # Redis (persisted submissions for retry)
    REDIS_URL: str = "redis://localhost:6379"
    SUBMISSION_TTL_SECONDS: int = 86400

    # Workflow executor webhook
    TRIGGER_URL: str = DEFAULT_TRIGGER_URL
    TRIGGER_TIMEOUT_SECONDS: float = 30.0

    # Status polling: interval * attempts is the generation SLA (20 minutes)
    POLL_INTERVAL_SECONDS: float = 5.0
    MAX_POLL_ATTEMPTS: int = 240

    # Finished sessions kept in memory; older ones are served from the Job Store
    SESSION_RETENTION_SECONDS: float = 3600.0
    MAX_RETAINED_SESSIONS: int = 500

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    @field_validator('TRIGGER_URL', 'REDIS_URL', 'DATABASE_URL', mode='before')
    @classmethod
    def strip_urls(cls, v):
        """Strip whitespace and newlines from URLs loaded from secrets."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator('POLL_INTERVAL_SECONDS', 'TRIGGER_TIMEOUT_SECONDS')
    @classmethod
    def positive_seconds(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator('MAX_POLL_ATTEMPTS', 'SUBMISSION_TTL_SECONDS', 'MAX_RETAINED_SESSIONS')
    @classmethod
    def positive_count(cls, v):
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator('SESSION_RETENTION_SECONDS')
    @classmethod
    def non_negative_seconds(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @property
    def poll_budget_seconds(self) -> float:
        """Upper bound on how long a generation is tracked before timing out."""
        return self.POLL_INTERVAL_SECONDS * self.MAX_POLL_ATTEMPTS

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
