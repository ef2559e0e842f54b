from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Awaitable, cast

from redis.exceptions import ResponseError

from ..logger import get_logger
from .config import QueueConfig
from .domain import ReceivedMessage

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from structlog.stdlib import BoundLogger

    from ..infrastructure.redis import RedisClient

logger: BoundLogger = get_logger(__name__)


def _decode(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class RedisStreamQueue:
    """Message queue on Redis Streams with consumer groups.

    Maps the transport contract onto stream primitives:

    - send: ``XADD`` with the JSON body in the ``body`` field; the stream is
      never trimmed, entries leave it only through delete or dead-lettering
    - receive: expired deliveries first (``XPENDING`` + ``XCLAIM``), then new
      entries (``XREADGROUP``); the receipt handle is the stream entry id
    - visibility timeout: an entry stays in the group's pending list until
      deleted and is only claimable again after ``visibility_timeout_ms`` idle
    - receive count: the pending list's delivery counter
    - dead-lettering: an expired entry already delivered ``max_receive_count``
      times is moved to ``dead_letter_stream`` by a Lua script, so the copy
      and the removal happen atomically
    - delete: ``XACK`` + ``XDEL``

    Usage Pattern
    -------------
    ```python
    queue = RedisStreamQueue(redis_client, QueueConfig())
    await queue.ainitialize()

    await queue.asend(body)
    for message in await queue.areceive(wait_time_seconds=20, max_messages=10):
        ...
        await queue.adelete(message.receipt_handle)
    ```
    """

    _DEAD_LETTER_LUA_SCRIPT: str = """
local source_stream = KEYS[1]
local dead_letter_stream = KEYS[2]
local entry_id = ARGV[1]
local group = ARGV[2]
local receive_count = ARGV[3]
local unpack = table.unpack or unpack

local entries = redis.call('XRANGE', source_stream, entry_id, entry_id)
if #entries == 0 then
    redis.call('XACK', source_stream, group, entry_id)
    return 0
end

local fields = entries[1][2]
redis.call('XADD', dead_letter_stream, '*',
    'source_stream', source_stream,
    'source_message_id', entry_id,
    'receive_count', receive_count,
    unpack(fields))

redis.call('XACK', source_stream, group, entry_id)
redis.call('XDEL', source_stream, entry_id)

return 1
"""

    def __init__(
        self,
        redis_client: RedisClient,
        config: QueueConfig | None = None,
        *,
        consumer_name: str | None = None,
    ) -> None:
        self._redis_client = redis_client
        self._config = config or QueueConfig()
        self._consumer_name = consumer_name or f"consumer_{uuid.uuid4().hex[:8]}"
        self._initialized = False

    @property
    def consumer_name(self) -> str:
        return self._consumer_name

    @property
    def stream_name(self) -> str:
        return self._config.stream_name

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise RuntimeError(f"RedisStreamQueue {self._config.stream_name} not initialized. Call ainitialize() first.")

    async def ainitialize(self) -> None:
        """Create the consumer group if it does not exist. Safe to call multiple times."""
        if self._initialized:
            return

        async with self._redis_client.aget_client() as client:
            try:
                await client.xgroup_create(
                    name=self._config.stream_name,
                    groupname=self._config.consumer_group,
                    id="0",
                    mkstream=True,
                )
                logger.info(
                    "Created queue consumer group",
                    stream=self._config.stream_name,
                    group=self._config.consumer_group,
                )
            except ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
                logger.debug(
                    "Consumer group already exists",
                    stream=self._config.stream_name,
                    group=self._config.consumer_group,
                )

        self._initialized = True

    async def asend(self, body: str) -> str:
        async with self._redis_client.aget_client() as client:
            entry_id_raw = await client.xadd(
                name=self._config.stream_name,
                fields={"body": body, "sent_at": datetime.now(UTC).isoformat()},
            )

        entry_id = _decode(entry_id_raw)
        logger.debug("Published queue message", stream=self._config.stream_name, message_id=entry_id)
        return entry_id

    async def areceive(self, wait_time_seconds: float, max_messages: int) -> list[ReceivedMessage]:
        """Receive expired redeliveries first, then block for new entries.

        When redeliveries were found the read for new entries does not block,
        so a batch is never delayed behind ``wait_time_seconds``.
        """
        self._ensure_initialized()

        async with self._redis_client.aget_client() as client:
            messages = await self._areclaim_expired(client, max_messages)

            remaining = max_messages - len(messages)
            if remaining > 0:
                block_ms = int(wait_time_seconds * 1000)
                raw_entries = await client.xreadgroup(
                    groupname=self._config.consumer_group,
                    consumername=self._consumer_name,
                    streams={self._config.stream_name: ">"},
                    count=remaining,
                    # NOTE: block=0 means "forever" to Redis, None means "do not block"
                    block=block_ms if block_ms > 0 and not messages else None,
                )
                for _stream, stream_entries in raw_entries or []:
                    for entry_id_raw, fields_raw in stream_entries:
                        message = self._to_message(_decode(entry_id_raw), fields_raw, receive_count=1)
                        if message is not None:
                            messages.append(message)

        if messages:
            logger.debug(
                "Received queue messages",
                stream=self._config.stream_name,
                count=len(messages),
            )
        return messages

    async def adelete(self, receipt_handle: str) -> None:
        async with self._redis_client.aget_client() as client:
            await client.xack(self._config.stream_name, self._config.consumer_group, receipt_handle)
            await client.xdel(self._config.stream_name, receipt_handle)

        logger.debug("Deleted queue message", stream=self._config.stream_name, message_id=receipt_handle)

    async def aget_message_count(self) -> int:
        """Entries in the stream, delivered or not."""
        async with self._redis_client.aget_client() as client:
            return await cast(Awaitable[int], client.xlen(self._config.stream_name))

    async def aget_pending_count(self) -> int:
        """Entries delivered to a consumer but not yet deleted."""
        async with self._redis_client.aget_client() as client:
            pending_info = await client.xpending(
                name=self._config.stream_name,
                groupname=self._config.consumer_group,
            )
        return int(pending_info.get("pending", 0)) if pending_info else 0

    async def _areclaim_expired(self, client: Redis, limit: int) -> list[ReceivedMessage]:
        pending_raw = await client.xpending_range(
            name=self._config.stream_name,
            groupname=self._config.consumer_group,
            min="-",
            max="+",
            count=self._config.reclaim_batch_size,
        )

        to_claim: dict[str, int] = {}
        for pending_entry in pending_raw:
            message_id = pending_entry.get("message_id")
            idle_ms = pending_entry.get("time_since_delivered", 0)
            times_delivered = int(pending_entry.get("times_delivered", 1))

            if not message_id or idle_ms < self._config.visibility_timeout_ms:
                continue

            entry_id = _decode(message_id)
            if self._config.dead_letter_stream is not None and times_delivered >= self._config.max_receive_count:
                await self._amove_to_dead_letter(client, entry_id, times_delivered)
                continue

            if len(to_claim) < limit:
                to_claim[entry_id] = times_delivered

        if not to_claim:
            return []

        claimed_raw = await client.xclaim(
            name=self._config.stream_name,
            groupname=self._config.consumer_group,
            consumername=self._consumer_name,
            min_idle_time=self._config.visibility_timeout_ms,
            message_ids=list(to_claim),
        )

        messages: list[ReceivedMessage] = []
        for entry_id_raw, fields_raw in claimed_raw:
            entry_id = _decode(entry_id_raw)
            message = self._to_message(entry_id, fields_raw, receive_count=to_claim.get(entry_id, 1) + 1)
            if message is not None:
                messages.append(message)

        if messages:
            logger.info(
                "Reclaimed expired queue messages",
                stream=self._config.stream_name,
                count=len(messages),
            )
        return messages

    async def _amove_to_dead_letter(self, client: Redis, entry_id: str, times_delivered: int) -> None:
        moved = await cast(
            Awaitable[int],
            client.eval(
                self._DEAD_LETTER_LUA_SCRIPT,
                2,
                self._config.stream_name,
                cast(str, self._config.dead_letter_stream),
                entry_id,
                self._config.consumer_group,
                str(times_delivered),
            ),
        )

        if moved:
            logger.warning(
                "Moved message to dead-letter stream",
                stream=self._config.stream_name,
                dead_letter_stream=self._config.dead_letter_stream,
                message_id=entry_id,
                receive_count=times_delivered,
            )
        else:
            logger.warning("Pending entry vanished before dead-lettering", message_id=entry_id)

    def _to_message(self, entry_id: str, fields_raw: Any, *, receive_count: int) -> ReceivedMessage | None:
        if not fields_raw:
            # Entry was deleted after delivery; nothing left to hand out
            logger.warning("Skipping queue entry without fields", stream=self._config.stream_name, message_id=entry_id)
            return None

        fields = {_decode(key): _decode(value) for key, value in fields_raw.items()}
        return ReceivedMessage(
            message_id=fields.get("source_message_id", entry_id),
            body=fields.get("body", ""),
            receipt_handle=entry_id,
            receive_count=max(receive_count, 1),
        )
