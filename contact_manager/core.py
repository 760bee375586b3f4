"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides a helper for accessing cached settings.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        DB_POOL_SIZE: Number of pooled connections kept open.
        DB_MAX_OVERFLOW: Extra connections allowed beyond the pool size.
        DB_POOL_TIMEOUT: Seconds a request waits for a free connection.
        SECRET_KEY: Secret key used for JWT signing.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime in minutes.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        API_PREFIX: Path prefix every router is mounted under.
        REDIS_URL: Redis connection URL for rate limiting.
        AUTH_RATE_LIMIT_TIMES: Requests allowed per window on auth routes.
        AUTH_RATE_LIMIT_SECONDS: Length of the auth rate limit window.
        DEFAULT_PAGE_LIMIT: Page size used when a listing omits ``limit``.
        MAX_PAGE_LIMIT: Largest page size a listing accepts.
        LOG_LEVEL: Root logging level.
    """

    DATABASE_URL: str = "sqlite:///./contacts.db"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 0
    DB_POOL_TIMEOUT: int = 30
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ALLOWED_ORIGINS: List[str] = ["*"]
    API_PREFIX: str = ""
    REDIS_URL: str = "redis://localhost:6379"
    AUTH_RATE_LIMIT_TIMES: int = 20
    AUTH_RATE_LIMIT_SECONDS: int = 60
    DEFAULT_PAGE_LIMIT: int = 50
    MAX_PAGE_LIMIT: int = 100
    LOG_LEVEL: str = "INFO"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()
