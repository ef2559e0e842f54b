from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from ..logger import get_logger
from .config import RoutingConfig
from .domain import RoutingTarget

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from .discovery import EndpointDiscovery
    from .domain import RelayerEndpointInfo
    from .health import EndpointProber, RelayerHealthCache

logger: BoundLogger = get_logger(__name__)


class SmartRouter:
    """Picks the least-loaded healthy relayer endpoint.

    1. Candidates come from discovery (registry, last known, or static).
    2. Every candidate's health is read from the health cache, probing
       concurrently on miss.
    3. Among healthy endpoints the minimum pending count wins. Endpoints tied
       at the minimum take turns through ``_tie_cursor``, taken modulo the
       size of the tied subset.
    4. With no healthy endpoint, candidates take turns through
       ``_fallback_cursor``; the chosen one is probed directly for its relayer
       id and gets the placeholder id when that probe fails too.

    ``aselect_endpoint`` never raises: any unexpected failure ends in the
    fallback.
    """

    def __init__(
        self,
        discovery: EndpointDiscovery,
        health_cache: RelayerHealthCache,
        prober: EndpointProber,
        config: RoutingConfig | None = None,
    ) -> None:
        self._discovery = discovery
        self._health_cache = health_cache
        self._prober = prober
        self._config = config or RoutingConfig()
        self._tie_cursor = 0
        self._fallback_cursor = 0

    async def aselect_endpoint(self) -> RoutingTarget:
        started = time.perf_counter()
        candidates: list[str] = []

        try:
            candidates = await self._discovery.aget_endpoints()
            infos = await asyncio.gather(*(self._health_cache.aget(endpoint) for endpoint in candidates))
            healthy = [info for info in infos if info.healthy and info.relayer_id is not None]

            if not healthy:
                logger.warning("No healthy relayers found, falling back to round-robin", candidates=candidates)
                return await self._afallback(candidates)

            chosen = self._pick_least_loaded(healthy)
            logger.info(
                "Selected relayer",
                endpoint=chosen.endpoint,
                relayer_id=chosen.relayer_id,
                pending_count=chosen.pending_count,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
            )
            return RoutingTarget(endpoint=chosen.endpoint, relayer_id=chosen.relayer_id or "")
        except Exception as e:
            logger.error("Smart routing failed, falling back to round-robin", error=str(e), exc_info=e)
            return await self._afallback(candidates)

    def _pick_least_loaded(self, healthy: list[RelayerEndpointInfo]) -> RelayerEndpointInfo:
        lowest = min(info.pending_count for info in healthy)
        tied = [info for info in healthy if info.pending_count == lowest]
        if len(tied) == 1:
            return tied[0]

        index = self._tie_cursor % len(tied)
        self._tie_cursor = (index + 1) % len(tied)
        return tied[index]

    async def _afallback(self, candidates: list[str]) -> RoutingTarget:
        pool = candidates or list(self._discovery.static_endpoints)
        index = self._fallback_cursor % len(pool)
        self._fallback_cursor = (index + 1) % len(pool)
        endpoint = pool[index]

        try:
            probe = await self._prober.aprobe(endpoint)
        except Exception as e:
            logger.warning(
                "Round-robin fallback probe failed, using placeholder relayer id",
                endpoint=endpoint,
                relayer_id=self._config.placeholder_relayer_id,
                error=str(e) or type(e).__name__,
            )
            return RoutingTarget(endpoint=endpoint, relayer_id=self._config.placeholder_relayer_id)

        logger.info("Round-robin selected relayer", endpoint=endpoint, relayer_id=probe.relayer_id)
        return RoutingTarget(endpoint=endpoint, relayer_id=probe.relayer_id or self._config.placeholder_relayer_id)

    def invalidate(self, endpoint: str) -> None:
        """Drop the cached health of ``endpoint``, e.g. after a dispatch failure there."""
        self._health_cache.invalidate(endpoint)

    def current_candidates(self) -> list[str]:
        return self._discovery.current()

    def current_cache_snapshot(self) -> dict[str, RelayerEndpointInfo]:
        return self._health_cache.snapshot()
