from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheStatistics(BaseModel):
    """Cache statistics model."""

    model_config = ConfigDict(ser_json_timedelta="iso8601", ser_json_bytes="utf8")

    hits: int
    misses: int
    sets: int
    deletes: int
    invalidations: int
    degraded: int
    errors: int
    total_bytes_written: int
    total_bytes_read: int
    hit_rate: str
    total_requests: int
    created_at: str
    last_updated_at: str


class CacheHealthResponse(BaseModel):
    """Cache health (nested in HealthCheckResponse)."""

    backend: str
    statistics: CacheStatistics
    status: str
    # Redis-specific fields (optional)
    latency_ms: float | None = None
    connected_clients: int | None = None
    used_memory_human: str | None = None
    redis_version: str | None = None
    # In-memory-specific fields (optional)
    info: dict[str, Any] | None = None
    error: str | None = None


class HealthCheckResponse(BaseModel):
    """Health check response model."""

    version: str = Field(description="API version")
    status: str = Field(description="Overall health status")
    timestamp: str = Field(description="Current timestamp")
    cache: CacheHealthResponse
    rate_limiter: dict[str, Any]
    notifications: dict[str, Any]


class CacheStatsResponse(BaseModel):
    """Cache statistics response model."""

    status: str
    data: CacheStatistics


class CacheResetStatsResponse(BaseModel):
    status: str
    message: str


class CachePingResponse(BaseModel):
    status: str
    message: str
    backend: str
