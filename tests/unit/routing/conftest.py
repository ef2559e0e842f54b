from __future__ import annotations

from collections import Counter

import pytest

from relay_queue.relayer.domain import RelayerProbe


class FakeProber:
    """EndpointProber answering from a table of probes or errors, counting calls."""

    def __init__(self, responses: dict[str, RelayerProbe | Exception] | None = None) -> None:
        self.responses: dict[str, RelayerProbe | Exception] = responses or {}
        self.calls: Counter[str] = Counter()

    async def aprobe(self, endpoint: str) -> RelayerProbe:
        self.calls[endpoint] += 1
        response = self.responses.get(endpoint, ConnectionError(f"connect ECONNREFUSED {endpoint}"))
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def prober() -> FakeProber:
    return FakeProber()
