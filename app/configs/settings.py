"""Application settings and configuration constants.

This module contains application settings, constants, and configuration
values for the blog backend: database, shared Redis store, cache, rate
limiting and real-time notification settings.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).parent.parent.parent / ".env"

# Response constants
RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
RATE_LIMITER_UNAVAILABLE_MESSAGE = "Rate limiter unavailable, please try again later."


class Settings(BaseSettings):
    """Application settings with validation and default values."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Blog API"
    DEBUG: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_TO_FILE: bool = False
    LOG_FILE: str = "logs/app.log"
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]

    # Database Configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./blog.db"
    DATABASE_ECHO: bool = False
    POOL_SIZE: int = 10
    MAX_OVERFLOW: int = 20
    POOL_TIMEOUT: int = 30
    POOL_RECYCLE: int = 1800

    # Redis Configuration (optional)
    REDIS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str | None = None

    # JWT verification (tokens are issued by an external identity service)
    SECRET_KEY: SecretStr = SecretStr("change-me-in-production")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    JWT_ISSUER: str = "blog-api"
    JWT_AUDIENCE: str = "blog-api-users"


settings = Settings()


class RedisCacheConfig(BaseSettings):
    """Redis connection pool configuration."""

    model_config = SettingsConfigDict(env_prefix="REDIS_", case_sensitive=False)

    host: str = settings.REDIS_HOST
    port: int = settings.REDIS_PORT
    db: int = settings.REDIS_DB
    password: str | None = settings.REDIS_PASSWORD
    socket_timeout: float = 2.0
    socket_connect_timeout: float = 2.0
    socket_keepalive: bool = True
    health_check_interval: int = 30
    max_connections: int = 50
    decode_responses: bool = True
    encoding: str = "utf-8"


class CacheConfig(BaseSettings):
    """Cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_", case_sensitive=False)

    default_ttl: int = 300  # 5 minutes
    max_ttl: int = 86400  # 24 hours
    key_prefix: str = ""
    compression_enabled: bool = False
    compression_threshold: int = 1024  # bytes
    operation_timeout: float = 1.0  # seconds
    scan_batch_size: int = 1000
    enable_statistics: bool = True


class RateLimitConfig(BaseSettings):
    """Fixed-window admission limits applied to every HTTP request."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_", case_sensitive=False)

    enabled: bool = True
    requests: int = 100
    window_seconds: int = 900  # 15 minutes
    fail_open: bool = True
    key_prefix: str = "ratelimit"
    operation_timeout: float = 1.0  # seconds
    exempt_paths: list[str] = ["/health", "/docs", "/redoc", "/openapi.json"]


class LimiterConfig(BaseSettings):
    """SlowAPI limiter configuration for per-route limits."""

    model_config = SettingsConfigDict(env_prefix="LIMITER_", case_sensitive=False)

    storage_uri: str = "memory://"
    strategy: Literal["fixed-window", "moving-window"] = "fixed-window"
    headers_enabled: bool = False
    swallow_errors: bool = True
    in_memory_fallback_enabled: bool = True


class NotificationConfig(BaseSettings):
    """Real-time notification hub configuration."""

    model_config = SettingsConfigDict(env_prefix="NOTIFY_", case_sensitive=False)

    channel: str = "notifications"
    handshake_timeout: float = 10.0  # seconds
    outbox_size: int = 100
    publish_timeout: float = 1.0  # seconds
    reconnect_delay: float = 1.0  # seconds, doubled after each failed subscribe
    max_reconnect_delay: float = 30.0  # seconds


def _pool_kwargs() -> dict[str, Any]:
    config = RedisCacheConfig()
    return config.model_dump(exclude_none=True)


pool_kwargs = _pool_kwargs()
