from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ConsumerConfig(BaseModel):
    """Main queue consumer settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Run the main consumer loop")
    wait_time_seconds: float = Field(default=20.0, ge=0, le=20, description="Long-poll wait per receive")
    max_messages: int = Field(default=10, ge=1, le=100, description="Maximum messages per batch")
    poll_interval_seconds: float = Field(default=1.0, ge=0, description="Sleep between batches")
    grace_period_seconds: float = Field(default=30.0, ge=0, description="Time an in-flight batch gets on shutdown")
    fail_fast_non_retryable: bool = Field(
        default=False,
        description=(
            "Mark NON_RETRYABLE dispatch failures failed and delete the message instead of waiting for redelivery"
        ),
    )


class DlqConsumerConfig(BaseModel):
    """Dead-letter queue consumer settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=True, description="Run the dead-letter consumer loop")
    wait_time_seconds: float = Field(default=10.0, ge=0, le=20, description="Long-poll wait per receive")
    max_messages: int = Field(default=10, ge=1, le=100, description="Maximum messages per batch")
    poll_interval_seconds: float = Field(default=10.0, ge=0, description="Sleep between batches")
    grace_period_seconds: float = Field(default=5.0, ge=0, description="Time an in-flight batch gets on shutdown")
