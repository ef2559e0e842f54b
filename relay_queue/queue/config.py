from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class QueueConfig(BaseModel):
    """Configuration for one Redis Streams backed queue.

    A message that was received but not deleted becomes visible again once it
    has been idle for ``visibility_timeout_ms``. When ``dead_letter_stream`` is
    set, a message already delivered ``max_receive_count`` times is moved
    there instead of being redelivered.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    stream_name: str = Field(default="relay:queue:transactions", min_length=1, description="Redis stream name")
    consumer_group: str = Field(default="relay-consumers", min_length=1, description="Consumer group name")
    dead_letter_stream: str | None = Field(
        default="relay:queue:transactions-dlq",
        description="Stream receiving messages past max_receive_count (None = redeliver forever)",
    )
    visibility_timeout_ms: int = Field(
        default=60_000,
        ge=1,
        description="Idle time before an undeleted message is delivered again",
    )
    max_receive_count: int = Field(default=3, ge=1, description="Deliveries before dead-lettering")
    reclaim_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Pending entries inspected per receive when looking for expired deliveries",
    )

    def dead_letter_config(self) -> QueueConfig:
        """Config for consuming this queue's dead-letter stream.

        The dead-letter stream has no further dead-letter stream of its own:
        its messages are redelivered until the DLQ consumer deletes them.
        """
        if self.dead_letter_stream is None:
            raise ValueError(f"Queue {self.stream_name} has no dead-letter stream")
        return self.model_copy(
            update={
                "stream_name": self.dead_letter_stream,
                "consumer_group": f"{self.consumer_group}-dlq",
                "dead_letter_stream": None,
            }
        )
