from __future__ import annotations

from datetime import datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field

from ...core.enums import HealthCheckStatus


class HealthCheckResult(BaseModel):
    """Result of a database health check for a single pool."""

    model_config = ConfigDict(frozen=True)

    status: HealthCheckStatus
    pool_size: int
    pool_max_size: int
    pool_idle_size: int = 0
    latency_s: float | None = None
    message: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)

    def is_healthy(self) -> bool:
        return self.status == HealthCheckStatus.HEALTHY

    @classmethod
    def initializing(cls, pool_max_size: int) -> Self:
        return cls(
            status=HealthCheckStatus.INITIALIZING,
            pool_size=0,
            pool_max_size=pool_max_size,
            message="Pool not initialized",
        )

    @classmethod
    def unhealthy(cls, pool_max_size: int, error: str) -> Self:
        return cls(
            status=HealthCheckStatus.UNHEALTHY,
            pool_size=0,
            pool_max_size=pool_max_size,
            message=error,
        )

    @classmethod
    def healthy(cls, pool_size: int, pool_max_size: int, latency_s: float, pool_idle_size: int) -> Self:
        return cls(
            status=HealthCheckStatus.HEALTHY,
            pool_size=pool_size,
            pool_max_size=pool_max_size,
            latency_s=latency_s,
            pool_idle_size=pool_idle_size,
            message="Pool is healthy",
        )
