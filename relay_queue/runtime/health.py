from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from ..core.enums import HealthCheckStatus
from ..infrastructure.postgres import HealthCheckResult


class QueueDepth(BaseModel):
    """Entries in a stream and entries delivered but not yet deleted."""

    model_config = ConfigDict(frozen=True)

    stream: str
    length: int
    pending: int


class AppHealth(BaseModel):
    """Health of one relay-queue process.

    ``status`` is the worst of Redis and PostgreSQL. Queue depths are
    informational and are ``None`` when they could not be read.
    """

    model_config = ConfigDict(frozen=True)

    status: HealthCheckStatus
    redis: HealthCheckStatus
    postgres: HealthCheckResult
    queue: QueueDepth | None = None
    dead_letter_queue: QueueDepth | None = None
    loops: dict[str, bool] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)

    def is_healthy(self) -> bool:
        return self.status == HealthCheckStatus.HEALTHY


def overall_status(*statuses: HealthCheckStatus) -> HealthCheckStatus:
    for status in (HealthCheckStatus.UNHEALTHY, HealthCheckStatus.INITIALIZING, HealthCheckStatus.DEGRADED):
        if status in statuses:
            return status
    return HealthCheckStatus.HEALTHY
