from __future__ import annotations

from .config import QueueConfig
from .domain import (
    DirectMessage,
    DirectRequest,
    ForwardRequest,
    GaslessMessage,
    GaslessRequest,
    QueueMessage,
    ReceivedMessage,
    extract_transaction_id,
    parse_message_body,
    serialize_message,
)
from .redis_streams import RedisStreamQueue
from .transport import MessageQueue

__all__ = [
    "DirectMessage",
    "DirectRequest",
    "ForwardRequest",
    "GaslessMessage",
    "GaslessRequest",
    "MessageQueue",
    "QueueConfig",
    "QueueMessage",
    "ReceivedMessage",
    "RedisStreamQueue",
    "extract_transaction_id",
    "parse_message_body",
    "serialize_message",
]
