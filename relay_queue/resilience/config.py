from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RetryConfig(BaseModel):
    """Configuration for bounded retries with exponential backoff and full jitter.

    See: https://aws.amazon.com/blogs/architecture/exponential-backoff-and-jitter/
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts, including the first call")
    wait_min: float = Field(default=0.05, ge=0, description="Minimum wait time in seconds")
    wait_max: float = Field(default=1.0, ge=0, description="Maximum wait time in seconds")
    multiplier: float = Field(default=0.1, ge=0, description="Wait multiplier")
    exp_base: float = Field(default=2.0, ge=1, description="Exponential base")

    never_retry_on: tuple[type[Exception], ...] | None = Field(
        default=None,
        description="Exception types raised after the first attempt; every other exception is retried",
    )

    reraise: bool = Field(default=True, description="Reraise the last exception once attempts are exhausted")
