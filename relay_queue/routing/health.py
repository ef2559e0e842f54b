from __future__ import annotations

import math
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from ..cache import TTLCache
from ..logger import get_logger
from .domain import RelayerEndpointInfo

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.stdlib import BoundLogger

    from ..relayer.domain import RelayerProbe

logger: BoundLogger = get_logger(__name__)


class EndpointProber(Protocol):
    async def aprobe(self, endpoint: str) -> RelayerProbe: ...


class RelayerHealthCache:
    """Per-endpoint health, probed on miss and cached for ``ttl_seconds``.

    A failed probe is cached too, as an unhealthy entry with an infinite
    pending count, so a dead endpoint is probed once per TTL and not on every
    routing decision. Concurrent misses on one endpoint share a single probe.
    """

    def __init__(
        self,
        prober: EndpointProber,
        ttl_seconds: float = 10.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._prober = prober
        self._cache: TTLCache[str, RelayerEndpointInfo] = TTLCache(ttl_seconds, clock=clock)

    async def aget(self, endpoint: str) -> RelayerEndpointInfo:
        return await self._cache.aget_or_load(endpoint, lambda: self.aprobe(endpoint))

    async def aprobe(self, endpoint: str) -> RelayerEndpointInfo:
        """Probe ``endpoint`` now, bypassing the cache. Never raises."""
        try:
            probe = await self._prober.aprobe(endpoint)
        except Exception as e:
            logger.warning("Relayer health probe failed", endpoint=endpoint, error=str(e) or type(e).__name__)
            return RelayerEndpointInfo(
                endpoint=endpoint,
                relayer_id=None,
                pending_count=math.inf,
                healthy=False,
                last_probed_at=datetime.now(UTC),
            )

        info = RelayerEndpointInfo(
            endpoint=endpoint,
            relayer_id=probe.relayer_id,
            pending_count=probe.pending_count,
            healthy=probe.is_active,
            last_probed_at=datetime.now(UTC),
        )
        if not info.healthy:
            logger.info("Relayer reported inactive status", endpoint=endpoint, status=probe.status)
        return info

    def invalidate(self, endpoint: str) -> None:
        if self._cache.invalidate(endpoint):
            logger.debug("Relayer health entry invalidated", endpoint=endpoint)

    def clear(self) -> None:
        self._cache.clear()

    def snapshot(self) -> dict[str, RelayerEndpointInfo]:
        return self._cache.snapshot()
