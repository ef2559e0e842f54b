from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

from redis.asyncio import ConnectionPool, Redis

from ...core.enums import HealthCheckStatus
from ...logger import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from structlog.stdlib import BoundLogger

    from .config import RedisConfig

logger: BoundLogger = get_logger(__name__)


class RedisClient:
    """Shared Redis connection of a relay-queue process.

    The queue transport (streams and consumer groups) and relayer discovery
    (the registry set) both borrow the connection through ``aget_client()``,
    so one pool serves the whole process.

    Parameters
    ----------
    config : RedisConfig
        Connection, pool, driver and SSL settings.

    Usage Pattern
    -------------
    ```python
    async with RedisClient(RedisConfig()) as redis_client:
        async with redis_client.aget_client() as client:
            await client.xlen("relay:queue:transactions")
    ```
    """

    def __init__(self, config: RedisConfig) -> None:
        self.config = config
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None
        self._init_lock = asyncio.Lock()

    async def ainitialize(self) -> None:
        """Open the pool and ping once; repeated calls are no-ops."""
        async with self._init_lock:
            if self._client is not None:
                return

            pool = ConnectionPool(**self.config.get_connection_pool_kwargs())
            client = Redis(connection_pool=pool)
            try:
                await client.ping()  # type: ignore[misc]
            except Exception as e:
                logger.error("Redis unreachable", url=self._redacted_url(), exc_info=e)
                await client.aclose()
                await pool.aclose()
                raise

            self._pool, self._client = pool, client
            logger.info("Redis client initialized", url=self._redacted_url(), ssl_enabled=self.config.ssl.enabled)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._pool is not None:
            await self._pool.aclose()
            self._pool = None
        logger.info("Redis client closed")

    async def ahealth_check(self) -> HealthCheckStatus:
        if self._client is None:
            return HealthCheckStatus.INITIALIZING

        try:
            await self._client.ping()  # type: ignore[misc]
        except Exception as e:
            logger.error("Redis health check failed", exc_info=e)
            return HealthCheckStatus.UNHEALTHY
        return HealthCheckStatus.HEALTHY

    @asynccontextmanager
    async def aget_client(self) -> AsyncIterator[Redis]:
        """Borrow the connection; errors raised inside the block are logged and re-raised.

        Raises
        ------
        RuntimeError
            If ``ainitialize`` has not completed.
        """
        if self._client is None:
            raise RuntimeError("Redis client not initialized")

        try:
            yield self._client
        except Exception as e:
            logger.error("Redis operation failed", exc_info=e)
            raise

    def _redacted_url(self) -> str:
        c = self.config.connection
        return f"{'rediss' if self.config.ssl.enabled else 'redis'}://{c.host}:{c.port}/{c.db}"

    async def __aenter__(self) -> RedisClient:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()
