"""HTTP client for the relayer pool API.

Every call carries the bearer credential. Non-2xx answers become
``RelayerHTTPError`` (status code and decoded body attached), timeouts and
connection failures become ``RelayerConnectionError``, so callers classify
failures without knowing about httpx.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Self

import httpx

from ..core.exceptions import (
    ConfirmationTimeoutError,
    RelayerConnectionError,
    RelayerError,
    RelayerHTTPError,
    RelayerResponseError,
)
from ..logger import get_logger
from ..queue.domain import DirectMessage, DirectRequest, GaslessRequest
from .config import RelayerConfig
from .domain import DispatchReceipt, RelayerProbe, RelayerTransactionStatus
from .forwarder import build_forwarder_execute_calldata

if TYPE_CHECKING:
    from types import TracebackType

    from structlog.stdlib import BoundLogger

    from ..queue.domain import GaslessMessage
    from ..routing.domain import RoutingTarget

logger: BoundLogger = get_logger(__name__)


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class RelayerClient:
    """Talks to one or more relayer endpoints.

    Dispatch is fire-and-forget: ``asend_direct`` and ``asend_gasless`` return
    as soon as the relayer acknowledges the submission, without waiting for
    the transaction to be mined. ``await_confirmation`` polls a submitted
    transaction for operational recovery and is never used on the consumer's
    hot path.

    Parameters
    ----------
    config : RelayerConfig | None
        API settings. Defaults are used when omitted.
    http_client : httpx.AsyncClient | None
        Shared client; one is created (and owned) when omitted.
    """

    def __init__(self, config: RelayerConfig | None = None, http_client: httpx.AsyncClient | None = None) -> None:
        self._config = config or RelayerConfig()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    @property
    def config(self) -> RelayerConfig:
        return self._config

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    def _url(self, endpoint: str, path: str) -> str:
        return f"{endpoint.rstrip('/')}{self._config.api_prefix}{path}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }

    async def _arequest(
        self,
        method: str,
        url: str,
        *,
        endpoint: str,
        timeout: float,
        json: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._http.request(method, url, json=json, headers=self._headers(), timeout=timeout)
        except httpx.TimeoutException as e:
            raise RelayerConnectionError(f"Relayer request timed out: {method} {url}", endpoint=endpoint) from e
        except httpx.TransportError as e:
            raise RelayerConnectionError(
                f"Relayer connection failed: {method} {url}: {str(e) or type(e).__name__}",
                endpoint=endpoint,
            ) from e

        if response.is_error:
            raise RelayerHTTPError(
                f"Relayer returned HTTP {response.status_code} for {method} {url}",
                status_code=response.status_code,
                body=_decode_body(response),
                endpoint=endpoint,
            )

        try:
            return response.json()
        except ValueError as e:
            raise RelayerResponseError(f"Relayer returned a non-JSON body for {method} {url}", endpoint=endpoint) from e

    async def aprobe(self, endpoint: str) -> RelayerProbe:
        """Read ``{relayer_id, pending_count, status}`` from the endpoint's first relayer.

        Raises
        ------
        RelayerError
            On timeout (``probe_timeout_seconds``), non-2xx, or a payload
            without a relayer.
        """
        payload = await self._arequest(
            "GET",
            self._url(endpoint, "/relayers"),
            endpoint=endpoint,
            timeout=self._config.probe_timeout_seconds,
        )

        relayers = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(relayers, list) or not relayers or not isinstance(relayers[0], dict):
            raise RelayerResponseError("No relayer found in response", endpoint=endpoint)

        first = relayers[0]
        relayer_id = first.get("id")
        if not relayer_id:
            raise RelayerResponseError("Relayer entry has no id", endpoint=endpoint)

        try:
            pending_count = int(first.get("pending_transactions") or 0)
        except (TypeError, ValueError) as e:
            raise RelayerResponseError("Relayer pending_transactions is not a number", endpoint=endpoint) from e

        probe = RelayerProbe(relayer_id=str(relayer_id), pending_count=max(pending_count, 0), status=first.get("status"))
        logger.debug(
            "Probed relayer",
            endpoint=endpoint,
            relayer_id=probe.relayer_id,
            pending_count=probe.pending_count,
            status=probe.status,
        )
        return probe

    async def aresolve_relayer_id(self, endpoint: str) -> str:
        probe = await self.aprobe(endpoint)
        return probe.relayer_id

    async def asend_direct(
        self,
        request: DirectRequest,
        endpoint: str,
        relayer_id: str | None = None,
    ) -> DispatchReceipt:
        payload = {
            "to": request.to,
            "data": request.data,
            "value": int(request.value) if request.value else 0,
            "gas_limit": int(request.gas_limit) if request.gas_limit else self._config.default_gas_limit,
            "speed": request.speed or self._config.default_speed,
        }
        return await self._asubmit(payload, endpoint, relayer_id, kind="direct")

    async def asend_gasless(
        self,
        request: GaslessRequest,
        forwarder_address: str,
        endpoint: str,
        relayer_id: str | None = None,
    ) -> DispatchReceipt:
        forward_request = request.request
        payload = {
            "to": forwarder_address,
            "data": build_forwarder_execute_calldata(forward_request, request.signature),
            "value": int(forward_request.value),
            "gas_limit": int(forward_request.gas) + self._config.forwarder_gas_overhead,
            "speed": self._config.default_speed,
        }
        return await self._asubmit(payload, endpoint, relayer_id, kind="gasless")

    async def adispatch(self, message: DirectMessage | GaslessMessage, target: RoutingTarget) -> DispatchReceipt:
        """Send a queue message to the routed endpoint."""
        if isinstance(message, DirectMessage):
            return await self.asend_direct(message.request, target.endpoint, target.relayer_id)
        return await self.asend_gasless(message.request, message.forwarder_address, target.endpoint, target.relayer_id)

    async def _asubmit(
        self,
        payload: dict[str, Any],
        endpoint: str,
        relayer_id: str | None,
        *,
        kind: str,
    ) -> DispatchReceipt:
        resolved_id = relayer_id or await self.aresolve_relayer_id(endpoint)
        response = await self._arequest(
            "POST",
            self._url(endpoint, f"/relayers/{resolved_id}/transactions"),
            endpoint=endpoint,
            timeout=self._config.dispatch_timeout_seconds,
            json=payload,
        )

        data = response.get("data") if isinstance(response, dict) else None
        external_id = data.get("id") if isinstance(data, dict) else None
        if not external_id:
            raise RelayerResponseError("Relayer acknowledgment has no transaction id", endpoint=endpoint)

        logger.info(
            "Relayer accepted transaction",
            kind=kind,
            endpoint=endpoint,
            relayer_id=resolved_id,
            external_id=external_id,
        )
        return DispatchReceipt(external_id=str(external_id), endpoint=endpoint, relayer_id=resolved_id)

    async def aget_transaction_status(
        self,
        endpoint: str,
        relayer_id: str,
        external_id: str,
    ) -> RelayerTransactionStatus:
        response = await self._arequest(
            "GET",
            self._url(endpoint, f"/relayers/{relayer_id}/transactions/{external_id}"),
            endpoint=endpoint,
            timeout=self._config.lookup_timeout_seconds,
        )

        data = response.get("data", response) if isinstance(response, dict) else None
        if not isinstance(data, dict) or not data.get("status"):
            raise RelayerResponseError("Relayer transaction has no status", endpoint=endpoint)

        return RelayerTransactionStatus(
            external_id=external_id,
            status=str(data["status"]),
            hash=data.get("hash"),
        )

    async def await_confirmation(
        self,
        endpoint: str,
        relayer_id: str,
        external_id: str,
        *,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> RelayerTransactionStatus:
        """Poll a submitted transaction until it reaches a terminal relayer status.

        Failed polls are logged and count as attempts.

        Raises
        ------
        ConfirmationTimeoutError
            If no terminal status was seen within ``max_attempts`` polls.
        """
        attempts = max_attempts or self._config.confirmation_max_attempts
        delay = self._config.confirmation_delay_seconds if delay_seconds is None else delay_seconds

        for attempt in range(1, attempts + 1):
            try:
                status = await self.aget_transaction_status(endpoint, relayer_id, external_id)
            except RelayerError as e:
                logger.warning(
                    "Confirmation poll failed",
                    external_id=external_id,
                    attempt=attempt,
                    max_attempts=attempts,
                    error=str(e),
                )
            else:
                if status.is_terminal:
                    logger.info(
                        "Transaction reached terminal status",
                        external_id=external_id,
                        status=status.status,
                        hash=status.hash,
                    )
                    return status
                logger.debug(
                    "Polling relayer for confirmation",
                    external_id=external_id,
                    attempt=attempt,
                    max_attempts=attempts,
                    status=status.status,
                )

            if attempt < attempts:
                await asyncio.sleep(delay)

        raise ConfirmationTimeoutError(external_id, attempts, endpoint=endpoint)
