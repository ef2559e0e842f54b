from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from ..logger import get_logger
from .config import DiscoveryConfig
from .domain import EndpointSource

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from structlog.stdlib import BoundLogger

    from ..infrastructure.redis import RedisClient

logger: BoundLogger = get_logger(__name__)


class EndpointDiscovery:
    """Cached list of active relayer endpoints.

    The list is refreshed from a Redis set of hostnames at most once per
    ``ttl_seconds``. Hostnames are sorted so every consumer sees the same
    order, then expanded to ``<scheme>://<host>:<port>``. When the set is
    empty or Redis fails, the last list read from the registry is kept; before
    any successful read the static endpoints are used.

    Parameters
    ----------
    redis_client : RedisClient | None
        Registry connection. ``None`` disables discovery.
    config : DiscoveryConfig | None
        Registry key, port, scheme and TTL.
    static_endpoints : Iterable[str]
        Fallback endpoints; must not be empty.
    clock : Callable[[], float]
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        redis_client: RedisClient | None,
        config: DiscoveryConfig | None = None,
        static_endpoints: Iterable[str] = (),
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._redis_client = redis_client
        self._config = config or DiscoveryConfig()
        self._static_endpoints = tuple(static_endpoints)
        if not self._static_endpoints:
            raise ValueError("At least one static relayer endpoint is required")

        self._clock = clock
        self._lock = asyncio.Lock()
        self._endpoints: tuple[str, ...] = self._static_endpoints
        self._last_known: tuple[str, ...] | None = None
        self._expires_at: float | None = None
        self._last_source = EndpointSource.STATIC

    @property
    def last_source(self) -> EndpointSource:
        return self._last_source

    @property
    def static_endpoints(self) -> tuple[str, ...]:
        return self._static_endpoints

    def current(self) -> list[str]:
        """Endpoints from the last refresh, without touching the registry."""
        return list(self._endpoints)

    def invalidate(self) -> None:
        self._expires_at = None

    async def aget_endpoints(self) -> list[str]:
        if self._is_fresh():
            return list(self._endpoints)

        async with self._lock:
            if self._is_fresh():
                return list(self._endpoints)

            self._endpoints, self._last_source = await self._arefresh()
            self._expires_at = self._clock() + self._config.ttl_seconds
            return list(self._endpoints)

    def _is_fresh(self) -> bool:
        return self._expires_at is not None and self._clock() < self._expires_at

    async def _arefresh(self) -> tuple[tuple[str, ...], EndpointSource]:
        if self._redis_client is None or not self._config.enabled:
            return self._static_endpoints, EndpointSource.STATIC

        try:
            async with self._redis_client.aget_client() as client:
                members = await client.smembers(self._config.registry_key)  # type: ignore[misc]
        except Exception as e:
            logger.warning(
                "Relayer registry unavailable, using fallback endpoints",
                registry_key=self._config.registry_key,
                error=str(e),
            )
            return self._fallback()

        hostnames = sorted({m.decode() if isinstance(m, bytes) else str(m) for m in members})
        if not hostnames:
            logger.warning("Relayer registry is empty, using fallback endpoints", registry_key=self._config.registry_key)
            return self._fallback()

        endpoints = tuple(f"{self._config.scheme}://{hostname}:{self._config.port}" for hostname in hostnames)
        if endpoints != self._last_known:
            logger.info("Discovered active relayers", endpoints=list(endpoints))
        self._last_known = endpoints
        return endpoints, EndpointSource.REGISTRY

    def _fallback(self) -> tuple[tuple[str, ...], EndpointSource]:
        if self._last_known:
            return self._last_known, EndpointSource.LAST_KNOWN
        return self._static_endpoints, EndpointSource.STATIC
