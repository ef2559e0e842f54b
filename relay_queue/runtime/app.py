from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Self

from ..consumers import DlqConsumer, MainConsumer
from ..core.enums import HealthCheckStatus
from ..errors import ErrorClassifier
from ..infrastructure.postgres import AsyncConnectionPool
from ..infrastructure.redis import RedisClient
from ..logger import get_logger
from ..producer import Producer
from ..queue import RedisStreamQueue
from ..relayer import RelayerClient
from ..routing import EndpointDiscovery, RelayerHealthCache, SmartRouter
from ..settings import RelayQueueSettings
from ..store import PostgresTransactionStore
from .health import AppHealth, QueueDepth, overall_status
from .loop import PollLoop
from .signals import remove_shutdown_signal_handlers, setup_shutdown_signal_handlers

if TYPE_CHECKING:
    from types import TracebackType

    import httpx
    from structlog.stdlib import BoundLogger

logger: BoundLogger = get_logger(__name__)


class RelayQueueApp:
    """Wires every component of a relay-queue process from settings.

    The Redis client is shared by the queue transport and relayer discovery.
    The producer is exposed for embedding in an API process; the two poll
    loops drive the main and dead-letter consumers.

    Usage Pattern
    -------------
    ```python
    async with RelayQueueApp(RelayQueueSettings()) as app:
        await app.arun_until_signal()
    ```
    """

    def __init__(
        self,
        settings: RelayQueueSettings | None = None,
        *,
        redis_client: RedisClient | None = None,
        pool: AsyncConnectionPool | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or RelayQueueSettings()
        s = self.settings

        self.redis_client = redis_client or RedisClient(s.redis)
        self.pool = pool or AsyncConnectionPool(s.postgres)
        self.store = PostgresTransactionStore(self.pool)

        self.queue = RedisStreamQueue(self.redis_client, s.queue, consumer_name=s.consumer_name)
        self.dlq = (
            RedisStreamQueue(self.redis_client, s.queue.dead_letter_config(), consumer_name=s.consumer_name)
            if s.queue.dead_letter_stream is not None
            else None
        )

        self.relayer_client = RelayerClient(s.relayer, http_client)
        self.discovery = EndpointDiscovery(self.redis_client, s.discovery, s.relayer.endpoints)
        self.health_cache = RelayerHealthCache(self.relayer_client, s.routing.health_ttl_seconds)
        self.router = SmartRouter(self.discovery, self.health_cache, self.relayer_client, s.routing)
        self.classifier = ErrorClassifier()

        self.producer = Producer(self.store, self.queue, s.retry)
        self.main_consumer = MainConsumer(
            self.queue,
            self.store,
            self.router,
            self.relayer_client,
            self.classifier,
            s.consumer,
            s.retry,
        )
        self.dlq_consumer = DlqConsumer(self.dlq, self.store, s.dlq_consumer) if self.dlq is not None else None

        self.loops: list[PollLoop] = []
        if s.consumer.enabled:
            self.loops.append(
                PollLoop(
                    "main-consumer",
                    self.main_consumer.apoll_and_process_once,
                    s.consumer.poll_interval_seconds,
                    s.consumer.grace_period_seconds,
                )
            )
        if self.dlq_consumer is not None and s.dlq_consumer.enabled:
            self.loops.append(
                PollLoop(
                    "dlq-consumer",
                    self.dlq_consumer.apoll_and_process_dlq_once,
                    s.dlq_consumer.poll_interval_seconds,
                    s.dlq_consumer.grace_period_seconds,
                )
            )

    async def __aenter__(self) -> Self:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def ainitialize(self) -> None:
        await self.redis_client.ainitialize()
        await self.pool.ainitialize()
        if self.settings.create_schema:
            await self.store.acreate_schema()

        await self.queue.ainitialize()
        if self.dlq is not None:
            await self.dlq.ainitialize()

        logger.info(
            "Relay queue initialized",
            stream=self.queue.stream_name,
            dead_letter_stream=self.dlq.stream_name if self.dlq is not None else None,
            static_endpoints=list(self.discovery.static_endpoints),
        )

    async def astart(self) -> None:
        for loop in self.loops:
            loop.start()

    async def astop(self) -> None:
        await asyncio.gather(*(loop.astop() for loop in self.loops))

    async def aclose(self) -> None:
        await self.astop()
        await self.relayer_client.aclose()
        await self.pool.aclose()
        await self.redis_client.aclose()
        logger.info("Relay queue closed")

    async def arun_until_signal(self) -> None:
        """Run the consumer loops until SIGTERM or SIGINT, then stop them gracefully."""
        stop_requested = asyncio.Event()
        setup_shutdown_signal_handlers(stop_requested.set)
        try:
            await self.astart()
            logger.info("Relay queue running", loops=[loop.name for loop in self.loops])
            await stop_requested.wait()
        finally:
            await self.astop()
            remove_shutdown_signal_handlers()

    async def ahealth_check(self) -> AppHealth:
        """Report Redis, PostgreSQL, queue depths and whether each loop is running."""
        redis_status = await self.redis_client.ahealth_check()
        postgres = await self.pool.ahealth_check()

        queue_depth = dlq_depth = None
        if redis_status == HealthCheckStatus.HEALTHY:
            queue_depth = await self._aqueue_depth(self.queue)
            if self.dlq is not None:
                dlq_depth = await self._aqueue_depth(self.dlq)

        return AppHealth(
            status=overall_status(redis_status, postgres.status),
            redis=redis_status,
            postgres=postgres,
            queue=queue_depth,
            dead_letter_queue=dlq_depth,
            loops={loop.name: loop.is_running for loop in self.loops},
        )

    async def _aqueue_depth(self, queue: RedisStreamQueue) -> QueueDepth | None:
        try:
            return QueueDepth(
                stream=queue.stream_name,
                length=await queue.aget_message_count(),
                pending=await queue.aget_pending_count(),
            )
        except Exception as e:
            logger.warning("Could not read queue depth", stream=queue.stream_name, error=str(e))
            return None
