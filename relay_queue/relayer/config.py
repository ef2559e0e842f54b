from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class RelayerConfig(BaseModel):
    """Relayer pool HTTP API settings.

    ``endpoints`` is the static list used when the discovery registry is empty
    or unreachable. A comma separated string is accepted so the list can come
    from a single environment variable.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    # str accepted so a comma separated env value is not JSON-decoded by pydantic-settings
    endpoints: tuple[str, ...] | str = Field(
        default=("http://localhost:8081",),
        description="Static relayer endpoints (scheme://host:port)",
    )
    api_key: SecretStr = Field(default=SecretStr("oz-relayer-shared-api-key-local-dev"), description="Bearer credential")
    api_prefix: str = Field(default="/api/v1", description="Path prefix of the relayer API")

    probe_timeout_seconds: float = Field(default=0.5, gt=0, description="Timeout of a health probe")
    dispatch_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout of a dispatch call")
    lookup_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout of status and id lookups")

    confirmation_max_attempts: int = Field(default=30, ge=1, description="Confirmation polling attempts")
    confirmation_delay_seconds: float = Field(default=0.5, ge=0, description="Delay between confirmation polls")

    default_gas_limit: int = Field(default=100_000, gt=0, description="Gas limit of direct sends without one")
    default_speed: str = Field(default="average", description="Relayer speed when the request has none")
    forwarder_gas_overhead: int = Field(
        default=50_000,
        ge=0,
        description="Gas added on top of the forward request's gas for the forwarder's own execution",
    )

    @field_validator("endpoints", mode="before")
    @classmethod
    def split_endpoints(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("endpoints")
    @classmethod
    def strip_trailing_slash(cls, value: tuple[str, ...] | str) -> tuple[str, ...]:
        if isinstance(value, str):
            value = (value,)
        endpoints = tuple(endpoint.rstrip("/") for endpoint in value)
        if not endpoints:
            raise ValueError("At least one relayer endpoint is required")
        return endpoints
