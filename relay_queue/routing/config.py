from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class DiscoveryConfig(BaseModel):
    """Active relayer discovery through a Redis set of hostnames."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Read the registry; False = static endpoints only")
    registry_key: str = Field(default="relayer:active", min_length=1, description="Redis set of active hostnames")
    port: int = Field(default=8080, ge=1, le=65535, description="Port appended to discovered hostnames")
    scheme: str = Field(default="http", pattern=r"^https?$", description="Scheme of discovered endpoints")
    ttl_seconds: float = Field(default=2.0, gt=0, description="Lifetime of the cached endpoint list")


class RoutingConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    health_ttl_seconds: float = Field(default=10.0, gt=0, description="Lifetime of a cached health probe")
    placeholder_relayer_id: str = Field(
        default="default-relayer",
        min_length=1,
        description="Relayer id returned by the fallback when its probe fails",
    )
