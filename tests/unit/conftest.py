"""Shared fixtures: in-memory queue and store, a controllable clock, sample requests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from relay_queue.core.exceptions import TransactionNotFoundError
from relay_queue.queue.domain import (
    DirectMessage,
    DirectRequest,
    ForwardRequest,
    GaslessMessage,
    GaslessRequest,
    ReceivedMessage,
    serialize_message,
)
from relay_queue.resilience import RetryConfig
from relay_queue.store.domain import (
    NewTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryQueue:
    """MessageQueue keeping sent, visible and deleted messages in lists."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.visible: list[ReceivedMessage] = []
        self.deleted: list[str] = []
        self.receive_calls: list[tuple[float, int]] = []
        self.send_error: Exception | None = None
        self.delete_error: Exception | None = None
        self._counter = 0

    async def asend(self, body: str) -> str:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(body)
        return self.deliver(body).message_id

    async def areceive(self, wait_time_seconds: float, max_messages: int) -> list[ReceivedMessage]:
        self.receive_calls.append((wait_time_seconds, max_messages))
        batch, self.visible = self.visible[:max_messages], self.visible[max_messages:]
        return batch

    async def adelete(self, receipt_handle: str) -> None:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append(receipt_handle)

    def deliver(self, body: str, *, receive_count: int = 1) -> ReceivedMessage:
        self._counter += 1
        message = ReceivedMessage(
            message_id=f"msg-{self._counter}",
            body=body,
            receipt_handle=f"receipt-{self._counter}",
            receive_count=receive_count,
        )
        self.visible.append(message)
        return message


class InMemoryTransactionStore:
    """TransactionStore over a dict, with switchable failures."""

    def __init__(self) -> None:
        self.records: dict[str, Transaction] = {}
        self.updates: list[tuple[str, TransactionUpdate]] = []
        self.create_error: Exception | None = None
        self.get_error: Exception | None = None
        self.update_error: Exception | None = None
        self.update_failures_remaining = 0

    async def acreate(self, new: NewTransaction) -> Transaction:
        if self.create_error is not None:
            raise self.create_error
        now = datetime.now(UTC)
        transaction = Transaction(
            transaction_id=new.transaction_id,
            type=new.type,
            status=TransactionStatus.QUEUED,
            request=new.request,
            forwarder_address=new.forwarder_address,
            retry_on_failure=new.retry_on_failure,
            created_at=now,
            updated_at=now,
        )
        self.records[transaction.transaction_id] = transaction
        return transaction

    async def aget(self, transaction_id: str) -> Transaction | None:
        if self.get_error is not None:
            raise self.get_error
        return self.records.get(transaction_id)

    async def aupdate(self, transaction_id: str, update: TransactionUpdate) -> Transaction:
        self.updates.append((transaction_id, update))
        if self.update_failures_remaining > 0:
            self.update_failures_remaining -= 1
            raise ConnectionError("database unavailable")
        if self.update_error is not None:
            raise self.update_error

        transaction = self.records.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)

        updated = transaction.model_copy(update={**update.changes(), "updated_at": datetime.now(UTC)})
        self.records[transaction_id] = updated
        return updated

    def seed(self, transaction_id: str = "tx-1", **fields: Any) -> Transaction:
        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "transaction_id": transaction_id,
            "type": TransactionType.DIRECT,
            "status": TransactionStatus.QUEUED,
            "request": {"to": "0xabc", "data": "0x00"},
            "retry_on_failure": False,
            "created_at": now,
            "updated_at": now,
            **fields,
        }
        transaction = Transaction(**values)
        self.records[transaction_id] = transaction
        return transaction


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue() -> InMemoryQueue:
    return InMemoryQueue()


@pytest.fixture
def dlq() -> InMemoryQueue:
    return InMemoryQueue()


@pytest.fixture
def store() -> InMemoryTransactionStore:
    return InMemoryTransactionStore()


@pytest.fixture
def fast_retry_config() -> RetryConfig:
    """Three attempts without sleeping between them."""
    return RetryConfig(max_attempts=3, wait_min=0, wait_max=0, multiplier=0)


@pytest.fixture
def direct_request() -> DirectRequest:
    return DirectRequest(to="0xabc", data="0x00")


@pytest.fixture
def gasless_request() -> GaslessRequest:
    return GaslessRequest(
        request=ForwardRequest(
            from_address="0x" + "11" * 20,
            to="0x" + "22" * 20,
            value="0",
            gas="100000",
            nonce="0",
            deadline="1893456000",
            data="0xa9059cbb",
        ),
        signature="0x" + "ab" * 65,
    )


@pytest.fixture
def direct_body(direct_request: DirectRequest) -> str:
    return serialize_message(DirectMessage(transaction_id="tx-1", request=direct_request))


@pytest.fixture
def gasless_body(gasless_request: GaslessRequest) -> str:
    return serialize_message(
        GaslessMessage(
            transaction_id="tx-1",
            request=gasless_request,
            forwarder_address="0x" + "33" * 20,
        )
    )


@pytest.fixture
def mock_redis() -> MagicMock:
    """Create a mock Redis client (the actual client returned by context manager)."""
    redis = MagicMock()
    redis.xgroup_create = AsyncMock()
    redis.xadd = AsyncMock(return_value="1700000000000-0")
    redis.xreadgroup = AsyncMock(return_value=[])
    redis.xack = AsyncMock(return_value=1)
    redis.xdel = AsyncMock(return_value=1)
    redis.xlen = AsyncMock(return_value=0)
    redis.xpending = AsyncMock(return_value={"pending": 0})
    redis.xpending_range = AsyncMock(return_value=[])
    redis.xclaim = AsyncMock(return_value=[])
    redis.eval = AsyncMock(return_value=1)
    redis.smembers = AsyncMock(return_value=set())
    return redis


@pytest.fixture
def mock_redis_client(mock_redis: MagicMock) -> MagicMock:
    """Create a mock RedisClient with async context manager."""
    client = MagicMock()

    @asynccontextmanager
    async def mock_aget_client() -> AsyncIterator[MagicMock]:
        yield mock_redis

    client.aget_client = mock_aget_client
    return client
