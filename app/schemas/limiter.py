from pydantic import BaseModel, ConfigDict, Field


class LimiterResetRequest(BaseModel):
    """Request model for resetting a client's current window."""

    model_config = ConfigDict(extra="forbid")

    identifier: str | None = Field(
        default=None,
        description="Client identity such as `ip:1.2.3.4`; defaults to the caller",
        examples=["ip:127.0.0.1"],
    )


class LimiterResetResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str
    identifier: str
    cleared: bool


class LimiterStatusResponse(BaseModel):
    """Configured policy and backend health of the admission limiter."""

    model_config = ConfigDict(extra="forbid")

    backend: str = Field(default="in-memory")
    enabled: bool
    backend_healthy: bool
    limit: int
    window_seconds: int
    fail_open: bool
