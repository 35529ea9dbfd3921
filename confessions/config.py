from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Follows 12-factor app configuration principles.
    """

    # Pydantic v2 settings config
    # env_file is only used as fallback, env vars take precedence
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_ignore_empty=True,
    )

    # Database Configuration (used by the "database" backend)
    DATABASE_URL: str = "sqlite:///./confessions.db"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Where confessions are stored: local SQL database or the AppSync GraphQL API
    CONFESSION_BACKEND: Literal["database", "appsync"] = "database"

    # AppSync - server-side only, never sent to clients
    APPSYNC_ENDPOINT: str = ""
    APPSYNC_API_KEY: str = ""
    APPSYNC_TIMEOUT_SECONDS: float = 10.0

    # Feed listing
    DEFAULT_LIST_LIMIT: int = 50

    # Rate limiting (POST only)
    RATE_LIMIT_BACKEND: Literal["memory", "redis"] = "memory"
    RATE_LIMIT_REQUESTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    REDIS_URL: str = "redis://localhost:6379/0"

    # Sentiment screening (Amazon Comprehend)
    SENTIMENT_ENABLED: bool = False
    SENTIMENT_FAIL_OPEN: bool = True
    NEGATIVE_SENTIMENT_THRESHOLD: float = 0.8
    SENTIMENT_LANGUAGE_CODE: str = "en"

    # AWS
    AWS_REGION: str = "ap-south-1"
    TABLE_NAME: str = "ConfessionsTable"
    TABLE_STATUS_INDEX: str = "status-createdAt-index"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to avoid reading .env file on every request.
    """
    return Settings()


# Global settings instance
settings = get_settings()
