from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .consumers.config import ConsumerConfig, DlqConsumerConfig
from .infrastructure.postgres.config import AsyncpgConfig
from .infrastructure.redis.config import RedisConfig
from .queue.config import QueueConfig
from .relayer.config import RelayerConfig
from .resilience.config import RetryConfig
from .routing.config import DiscoveryConfig, RoutingConfig


class RelayQueueSettings(BaseSettings):
    """Every setting of a relay-queue process.

    Nested values are read from ``RELAY_QUEUE_<SECTION>__<FIELD>``, e.g.
    ``RELAY_QUEUE_REDIS__CONNECTION__HOST`` or
    ``RELAY_QUEUE_RELAYER__ENDPOINTS=http://relayer-0:8080,http://relayer-1:8080``.
    Logging is configured separately through ``LoggingConfig`` (``LOG_`` prefix).
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAY_QUEUE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    redis: RedisConfig = Field(default_factory=RedisConfig)
    postgres: AsyncpgConfig = Field(default_factory=AsyncpgConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    relayer: RelayerConfig = Field(default_factory=RelayerConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    consumer: ConsumerConfig = Field(default_factory=ConsumerConfig)
    dlq_consumer: DlqConsumerConfig = Field(default_factory=DlqConsumerConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    consumer_name: str | None = Field(
        default=None,
        description="Name of this process in the queue consumer groups (random when unset)",
    )
    create_schema: bool = Field(default=True, description="Create the transaction table on startup")
