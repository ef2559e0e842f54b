"""Unit tests for SmartRouter."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest

from relay_queue.relayer.domain import RelayerProbe
from relay_queue.routing import EndpointDiscovery, RelayerHealthCache, RoutingConfig, RoutingTarget, SmartRouter

if TYPE_CHECKING:
    from conftest import FakeClock, FakeProber

A, B, C, D = (f"http://relayer-{name}:8080" for name in "abcd")


def make_router(endpoints: list[str], prober: FakeProber, clock: FakeClock) -> SmartRouter:
    discovery = EndpointDiscovery(None, static_endpoints=endpoints, clock=clock)
    health_cache = RelayerHealthCache(prober, ttl_seconds=10, clock=clock)
    return SmartRouter(discovery, health_cache, prober)


def load(prober: FakeProber, **pending: int) -> None:
    """Register an active relayer per endpoint letter with the given pending count."""
    for name, count in pending.items():
        prober.responses[f"http://relayer-{name}:8080"] = RelayerProbe(
            relayer_id=f"relayer-{name}", pending_count=count, status="active"
        )


class TestLeastLoaded:
    """Selection among healthy endpoints."""

    @pytest.mark.asyncio
    async def test_picks_minimum_pending(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test the endpoint with the fewest pending transactions wins."""
        load(prober, a=5, b=2, c=8)
        router = make_router([A, B, C], prober, clock)

        target = await router.aselect_endpoint()

        assert target == RoutingTarget(endpoint=B, relayer_id="relayer-b")

    @pytest.mark.asyncio
    async def test_ties_at_minimum_alternate(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test pending counts [5, 2, 2, 8] alternate between the two count-2 endpoints."""
        load(prober, a=5, b=2, c=2, d=8)
        router = make_router([A, B, C, D], prober, clock)

        picks = [(await router.aselect_endpoint()).endpoint for _ in range(4)]

        assert picks == [B, C, B, C]

    @pytest.mark.asyncio
    async def test_equal_load_cycles_through_all(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test three endpoints at [3, 3, 3] are each chosen in turn."""
        load(prober, a=3, b=3, c=3)
        router = make_router([A, B, C], prober, clock)

        picks = [(await router.aselect_endpoint()).endpoint for _ in range(3)]

        assert picks == [A, B, C]

    @pytest.mark.asyncio
    async def test_inactive_relayer_is_skipped(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test an idle but paused relayer loses to a busy active one."""
        load(prober, b=7)
        prober.responses[A] = RelayerProbe(relayer_id="relayer-a", pending_count=0, status="paused")
        router = make_router([A, B], prober, clock)

        assert (await router.aselect_endpoint()).endpoint == B

    @pytest.mark.asyncio
    async def test_unreachable_relayer_is_skipped(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test an endpoint whose probe fails is never chosen while another is healthy."""
        load(prober, b=50)
        router = make_router([A, B], prober, clock)

        for _ in range(3):
            assert (await router.aselect_endpoint()).endpoint == B


class TestHealthCaching:
    """Probing frequency."""

    @pytest.mark.asyncio
    async def test_one_probe_per_endpoint_within_ttl(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test many selections within 10 seconds probe each endpoint once."""
        load(prober, a=1, b=2)
        router = make_router([A, B], prober, clock)

        for _ in range(5):
            await router.aselect_endpoint()
            clock.advance(1)

        assert prober.calls == {A: 1, B: 1}

        clock.advance(5)
        await router.aselect_endpoint()

        assert prober.calls == {A: 2, B: 2}

    @pytest.mark.asyncio
    async def test_invalidate_reprobes_endpoint(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test invalidation makes the next selection see fresh load."""
        load(prober, a=1, b=2)
        router = make_router([A, B], prober, clock)
        assert (await router.aselect_endpoint()).endpoint == A

        load(prober, a=9)
        router.invalidate(A)

        assert (await router.aselect_endpoint()).endpoint == B
        assert prober.calls[A] == 2

    @pytest.mark.asyncio
    async def test_cache_snapshot(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test the snapshot exposes the cached endpoint info."""
        load(prober, a=1)
        router = make_router([A], prober, clock)
        await router.aselect_endpoint()

        snapshot = router.current_cache_snapshot()

        assert snapshot[A].pending_count == 1
        assert router.current_candidates() == [A]


class TestFallback:
    """Round-robin when nothing is healthy."""

    @pytest.mark.asyncio
    async def test_round_robin_with_placeholder(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test unreachable endpoints rotate and get the placeholder relayer id."""
        router = make_router([A, B], prober, clock)

        targets = [await router.aselect_endpoint() for _ in range(3)]

        assert [t.endpoint for t in targets] == [A, B, A]
        assert {t.relayer_id for t in targets} == {"default-relayer"}

    @pytest.mark.asyncio
    async def test_fallback_uses_probed_relayer_id(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test an inactive relayer still reports its id to the fallback."""
        prober.responses[A] = RelayerProbe(relayer_id="relayer-a", status="paused")
        router = make_router([A], prober, clock)

        assert await router.aselect_endpoint() == RoutingTarget(endpoint=A, relayer_id="relayer-a")

    @pytest.mark.asyncio
    async def test_custom_placeholder(self, prober: FakeProber, clock: FakeClock) -> None:
        """Test the placeholder id comes from the config."""
        discovery = EndpointDiscovery(None, static_endpoints=[A], clock=clock)
        router = SmartRouter(
            discovery,
            RelayerHealthCache(prober, clock=clock),
            prober,
            RoutingConfig(placeholder_relayer_id="relayer-fallback"),
        )

        assert (await router.aselect_endpoint()).relayer_id == "relayer-fallback"

    @pytest.mark.asyncio
    async def test_discovery_failure_never_raises(self, prober: FakeProber) -> None:
        """Test an unexpected discovery error ends in the static fallback."""
        load(prober, a=0)
        discovery = MagicMock()
        discovery.aget_endpoints = AsyncMock(side_effect=RuntimeError("registry exploded"))
        discovery.static_endpoints = (A,)
        router = SmartRouter(discovery, RelayerHealthCache(prober), prober)

        assert await router.aselect_endpoint() == RoutingTarget(endpoint=A, relayer_id="relayer-a")
