from __future__ import annotations

import math
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class EndpointSource(StrEnum):
    REGISTRY = "registry"
    LAST_KNOWN = "last_known"
    STATIC = "static"


class RelayerEndpointInfo(BaseModel):
    """Cached load and health of one relayer endpoint.

    ``pending_count`` is ``math.inf`` when the last probe failed, so an
    unhealthy endpoint always sorts last.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str
    relayer_id: str | None = None
    pending_count: float = Field(default=math.inf, ge=0)
    healthy: bool = False
    last_probed_at: datetime


class RoutingTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str
    relayer_id: str
