"""Async connection pool for PostgreSQL using asyncpg."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Literal, Self

import asyncpg
from asyncpg import Pool, Record

from ...logger import get_logger
from .health import HealthCheckResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from types import TracebackType

    from asyncpg.pool import PoolConnectionProxy
    from structlog.stdlib import BoundLogger

    from .config import AsyncpgConfig

logger: BoundLogger = get_logger(__name__)

type IsolationLevel = Literal["read_uncommitted", "read_committed", "repeatable_read", "serializable"]


class PoolNotInitializedError(RuntimeError):
    """Raised when the pool is used before ``ainitialize()``."""


class AsyncConnectionPool:
    """Async connection pool for a single PostgreSQL database.

    Examples
    --------
    >>> async with AsyncConnectionPool(config) as pool:
    ...     row = await pool.afetchrow("SELECT * FROM relay_transactions WHERE transaction_id = $1", tx_id)
    """

    __slots__ = ("_config", "_init_lock", "_pool")

    def __init__(self, config: AsyncpgConfig) -> None:
        self._config = config
        self._pool: Pool[Record] | None = None
        self._init_lock = asyncio.Lock()

    async def __aenter__(self) -> Self:
        await self.ainitialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_type is not None and exc_val is not None:
            logger.error(
                "AsyncConnectionPool context manager exiting with exception",
                exc_type=exc_type.__name__,
                exc_val=str(exc_val),
            )
        await self.aclose()

    @property
    def pool(self) -> Pool[Record]:
        """Access the underlying asyncpg pool.

        Raises
        ------
        PoolNotInitializedError
            If pool has not been initialized via `ainitialize()`.
        """
        if self._pool is None:
            raise PoolNotInitializedError("Pool not initialized. Call ainitialize() first.")
        return self._pool

    async def ainitialize(self) -> None:
        """Initialize the connection pool.

        Idempotent. The lock keeps two concurrent callers from each creating
        a pool and orphaning one of them.
        """
        async with self._init_lock:
            if self._pool is not None:
                return

            self._pool = await asyncpg.create_pool(**self._config.to_pool_params())

            async with self._pool.acquire() as conn:
                await conn.execute("SELECT 1")

            logger.info(
                "AsyncConnectionPool initialized",
                host=self._config.connection.host,
                database=self._config.connection.database,
                min_size=self._config.pool.min_size,
                max_size=self._config.pool.max_size,
            )

    async def aclose(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("AsyncConnectionPool closed")

    async def ahealth_check(self) -> HealthCheckResult:
        """Check pool health by executing a simple query."""
        if self._pool is None:
            return HealthCheckResult.initializing(pool_max_size=self._config.pool.max_size)

        try:
            started = time.perf_counter()
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            latency_s = time.perf_counter() - started
        except Exception as e:
            return HealthCheckResult.unhealthy(pool_max_size=self._config.pool.max_size, error=str(e))

        return HealthCheckResult.healthy(
            pool_size=self._pool.get_size(),
            pool_max_size=self._pool.get_max_size(),
            latency_s=latency_s,
            pool_idle_size=self._pool.get_idle_size(),
        )

    @asynccontextmanager
    async def aacquire(self) -> AsyncIterator[PoolConnectionProxy[Record]]:
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def atransaction(
        self,
        isolation: IsolationLevel = "read_committed",
        *,
        readonly: bool = False,
    ) -> AsyncIterator[PoolConnectionProxy[Record]]:
        async with self.aacquire() as conn, conn.transaction(isolation=isolation, readonly=readonly):
            yield conn

    async def afetchrow(self, query: str, *args: object, timeout: float | None = None) -> Record | None:
        async with self.aacquire() as conn:
            return await conn.fetchrow(query, *args, timeout=timeout)
