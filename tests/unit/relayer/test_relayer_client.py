"""Unit tests for RelayerClient using httpx.MockTransport."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from relay_queue.core.exceptions import (
    ConfirmationTimeoutError,
    RelayerConnectionError,
    RelayerHTTPError,
    RelayerResponseError,
)
from relay_queue.queue.domain import DirectMessage, DirectRequest, GaslessMessage, GaslessRequest
from relay_queue.relayer import RelayerClient, RelayerConfig
from relay_queue.relayer.forwarder import build_forwarder_execute_calldata
from relay_queue.routing import RoutingTarget

ENDPOINT = "http://relayer-0:8080"
FORWARDER = "0x" + "33" * 20

type Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)


def relayers_response(*relayers: dict[str, Any]) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": list(relayers)})


def make_client(handler: Handler, **config: Any) -> tuple[RelayerClient, RecordingTransport]:
    transport = RecordingTransport(handler)
    client = RelayerClient(RelayerConfig(**config), httpx.AsyncClient(transport=transport))
    return client, transport


class TestProbe:
    """Tests for aprobe."""

    @pytest.mark.asyncio
    async def test_reads_first_relayer(self) -> None:
        """Test id, pending count and status come from the first relayer."""
        client, transport = make_client(
            lambda _: relayers_response(
                {"id": "relayer-1", "pending_transactions": 4, "status": "active"},
                {"id": "relayer-2", "pending_transactions": 0},
            )
        )

        probe = await client.aprobe(ENDPOINT)

        assert probe.relayer_id == "relayer-1"
        assert probe.pending_count == 4
        assert probe.status == "active"
        request = transport.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{ENDPOINT}/api/v1/relayers"
        assert request.headers["Authorization"] == "Bearer oz-relayer-shared-api-key-local-dev"

    @pytest.mark.asyncio
    async def test_missing_pending_count_is_zero(self) -> None:
        """Test an absent pending_transactions field counts as idle."""
        client, _ = make_client(lambda _: relayers_response({"id": "relayer-1"}))

        probe = await client.aprobe(ENDPOINT)

        assert probe.pending_count == 0
        assert probe.is_active

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{"data": []}, {"data": [{"pending_transactions": 1}]}, {"data": "nope"}, ["relayer-1"]],
    )
    async def test_unusable_payload(self, payload: Any) -> None:
        """Test payloads without a relayer raise RelayerResponseError."""
        client, _ = make_client(lambda _: httpx.Response(200, json=payload))

        with pytest.raises(RelayerResponseError):
            await client.aprobe(ENDPOINT)

    @pytest.mark.asyncio
    async def test_uses_probe_timeout(self) -> None:
        """Test the probe carries the short probe timeout."""
        client, transport = make_client(lambda _: relayers_response({"id": "relayer-1"}), probe_timeout_seconds=0.25)

        await client.aprobe(ENDPOINT)

        assert transport.requests[0].extensions["timeout"]["read"] == 0.25

    @pytest.mark.asyncio
    async def test_custom_api_key(self) -> None:
        """Test the configured credential is sent."""
        client, transport = make_client(lambda _: relayers_response({"id": "relayer-1"}), api_key="secret")

        await client.aprobe(ENDPOINT)

        assert transport.requests[0].headers["Authorization"] == "Bearer secret"


class TestErrorTranslation:
    """httpx failures become relayer errors."""

    @pytest.mark.asyncio
    async def test_http_error_carries_status_and_body(self) -> None:
        """Test non-2xx answers raise RelayerHTTPError with the decoded body."""
        client, _ = make_client(lambda _: httpx.Response(400, json={"message": "insufficient funds"}))

        with pytest.raises(RelayerHTTPError) as exc_info:
            await client.aprobe(ENDPOINT)

        assert exc_info.value.status_code == 400
        assert exc_info.value.body == {"message": "insufficient funds"}
        assert exc_info.value.endpoint == ENDPOINT

    @pytest.mark.asyncio
    async def test_http_error_with_text_body(self) -> None:
        """Test a non-JSON error body is kept as text."""
        client, _ = make_client(lambda _: httpx.Response(502, text="Bad Gateway"))

        with pytest.raises(RelayerHTTPError) as exc_info:
            await client.aprobe(ENDPOINT)

        assert exc_info.value.body == "Bad Gateway"

    @pytest.mark.asyncio
    async def test_connect_error(self) -> None:
        """Test refused connections raise RelayerConnectionError."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

        client, _ = make_client(refuse)

        with pytest.raises(RelayerConnectionError, match="Connection refused"):
            await client.aprobe(ENDPOINT)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Test timeouts raise RelayerConnectionError mentioning the timeout."""

        def stall(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        client, _ = make_client(stall)

        with pytest.raises(RelayerConnectionError, match="timed out"):
            await client.aprobe(ENDPOINT)

    @pytest.mark.asyncio
    async def test_non_json_success(self) -> None:
        """Test a 2xx body that is not JSON raises RelayerResponseError."""
        client, _ = make_client(lambda _: httpx.Response(200, text="<html>"))

        with pytest.raises(RelayerResponseError):
            await client.aprobe(ENDPOINT)


class TestDispatch:
    """Tests for direct and gasless sends."""

    @staticmethod
    def accept(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": {"id": "ext-1", "status": "pending"}})

    @pytest.mark.asyncio
    async def test_direct_payload_defaults(self) -> None:
        """Test missing value, gas limit and speed get their defaults."""
        client, transport = make_client(self.accept)

        receipt = await client.asend_direct(DirectRequest(to="0xabc", data="0x00"), ENDPOINT, "relayer-1")

        assert receipt.external_id == "ext-1"
        assert receipt.endpoint == ENDPOINT
        assert receipt.relayer_id == "relayer-1"
        request = transport.requests[0]
        assert request.method == "POST"
        assert str(request.url) == f"{ENDPOINT}/api/v1/relayers/relayer-1/transactions"
        assert json.loads(request.content) == {
            "to": "0xabc",
            "data": "0x00",
            "value": 0,
            "gas_limit": 100000,
            "speed": "average",
        }

    @pytest.mark.asyncio
    async def test_direct_payload_explicit_fields(self) -> None:
        """Test request fields override the defaults and are sent as integers."""
        client, transport = make_client(self.accept)

        await client.asend_direct(
            DirectRequest(to="0xabc", data="0x", value="1000", gas_limit="250000", speed="fast"),
            ENDPOINT,
            "relayer-1",
        )

        body = json.loads(transport.requests[0].content)
        assert body["value"] == 1000
        assert body["gas_limit"] == 250000
        assert body["speed"] == "fast"

    @pytest.mark.asyncio
    async def test_gasless_payload(self, gasless_request: GaslessRequest) -> None:
        """Test gasless sends target the forwarder with execute() calldata and extra gas."""
        client, transport = make_client(self.accept)

        await client.asend_gasless(gasless_request, FORWARDER, ENDPOINT, "relayer-1")

        body = json.loads(transport.requests[0].content)
        assert body == {
            "to": FORWARDER,
            "data": build_forwarder_execute_calldata(gasless_request.request, gasless_request.signature),
            "value": 0,
            "gas_limit": 150000,
            "speed": "average",
        }

    @pytest.mark.asyncio
    async def test_relayer_id_is_resolved_when_missing(self) -> None:
        """Test a dispatch without relayer id probes the endpoint first."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "GET":
                return relayers_response({"id": "relayer-9"})
            return self.accept(request)

        client, transport = make_client(handler)

        receipt = await client.asend_direct(DirectRequest(to="0xabc"), ENDPOINT)

        assert receipt.relayer_id == "relayer-9"
        assert [r.method for r in transport.requests] == ["GET", "POST"]
        assert transport.requests[1].url.path == "/api/v1/relayers/relayer-9/transactions"

    @pytest.mark.asyncio
    async def test_acknowledgment_without_id(self) -> None:
        """Test a 2xx without data.id raises RelayerResponseError."""
        client, _ = make_client(lambda _: httpx.Response(200, json={"success": True, "data": {}}))

        with pytest.raises(RelayerResponseError):
            await client.asend_direct(DirectRequest(to="0xabc"), ENDPOINT, "relayer-1")

    @pytest.mark.asyncio
    async def test_adispatch_routes_by_message_type(
        self, direct_request: DirectRequest, gasless_request: GaslessRequest
    ) -> None:
        """Test adispatch sends direct messages as-is and gasless ones through the forwarder."""
        client, transport = make_client(self.accept)
        target = RoutingTarget(endpoint=ENDPOINT, relayer_id="relayer-1")

        await client.adispatch(DirectMessage(transaction_id="tx-1", request=direct_request), target)
        await client.adispatch(
            GaslessMessage(transaction_id="tx-2", request=gasless_request, forwarder_address=FORWARDER),
            target,
        )

        direct_body, gasless_body = (json.loads(r.content) for r in transport.requests)
        assert direct_body["to"] == "0xabc"
        assert gasless_body["to"] == FORWARDER


class TestConfirmation:
    """Tests for status lookup and confirmation polling."""

    @pytest.mark.asyncio
    async def test_status_lookup(self) -> None:
        """Test status and hash are read from data."""
        client, transport = make_client(
            lambda _: httpx.Response(200, json={"data": {"id": "ext-1", "status": "mined", "hash": "0xfeed"}})
        )

        status = await client.aget_transaction_status(ENDPOINT, "relayer-1", "ext-1")

        assert status.status == "mined"
        assert status.hash == "0xfeed"
        assert status.is_terminal
        assert transport.requests[0].url.path == "/api/v1/relayers/relayer-1/transactions/ext-1"

    @pytest.mark.asyncio
    async def test_polls_until_terminal(self) -> None:
        """Test polling stops at the first terminal status."""
        statuses = iter(["pending", "sent", "confirmed"])
        client, transport = make_client(lambda _: httpx.Response(200, json={"data": {"status": next(statuses)}}))

        status = await client.await_confirmation(ENDPOINT, "relayer-1", "ext-1", delay_seconds=0)

        assert status.status == "confirmed"
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_failed_polls_count_as_attempts(self) -> None:
        """Test errors are tolerated until attempts run out."""
        client, transport = make_client(lambda _: httpx.Response(503, json={"error": "busy"}))

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await client.await_confirmation(ENDPOINT, "relayer-1", "ext-1", max_attempts=3, delay_seconds=0)

        assert exc_info.value.attempts == 3
        assert len(transport.requests) == 3

    @pytest.mark.asyncio
    async def test_non_terminal_until_timeout(self) -> None:
        """Test a transaction stuck in pending times out."""
        client, _ = make_client(lambda _: httpx.Response(200, json={"data": {"status": "pending"}}))

        with pytest.raises(ConfirmationTimeoutError, match="ext-1"):
            await client.await_confirmation(ENDPOINT, "relayer-1", "ext-1", max_attempts=2, delay_seconds=0)


class TestLifecycle:
    """Client ownership."""

    @pytest.mark.asyncio
    async def test_shared_client_is_not_closed(self) -> None:
        """Test a passed-in httpx client stays open after aclose."""
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda _: httpx.Response(200)))

        async with RelayerClient(http_client=http_client):
            pass

        assert not http_client.is_closed
        await http_client.aclose()

    @pytest.mark.asyncio
    async def test_owned_client_is_closed(self) -> None:
        """Test a client created internally is closed by aclose."""
        client = RelayerClient()

        await client.aclose()

        assert client._http.is_closed
