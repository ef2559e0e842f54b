"""Queue message bodies and delivered-message envelopes.

Bodies are JSON with camelCase keys::

    {"transactionId": "...", "type": "direct" | "gasless",
     "request": {...}, "forwarderAddress": "0x...", "retryOnFailure": false}
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from ..core.exceptions import MessageParseError


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class DirectRequest(CamelModel):
    """A transaction the relayer sends as-is."""

    to: str = Field(min_length=1)
    data: str = Field(default="0x")
    value: str | None = None
    gas_limit: str | None = None
    speed: str | None = None


class ForwardRequest(CamelModel):
    """ERC-2771 forward request signed by the end user."""

    from_address: str = Field(alias="from", min_length=1)
    to: str = Field(min_length=1)
    value: str = "0"
    gas: str
    nonce: str
    deadline: str
    data: str = "0x"


class GaslessRequest(CamelModel):
    request: ForwardRequest
    signature: str = Field(min_length=1)


class DirectMessage(CamelModel):
    transaction_id: str = Field(min_length=1)
    type: Literal["direct"] = "direct"
    request: DirectRequest
    retry_on_failure: bool | None = None


class GaslessMessage(CamelModel):
    transaction_id: str = Field(min_length=1)
    type: Literal["gasless"] = "gasless"
    request: GaslessRequest
    forwarder_address: str = Field(min_length=1)
    retry_on_failure: bool | None = None


QueueMessage = Annotated[DirectMessage | GaslessMessage, Field(discriminator="type")]

_QUEUE_MESSAGE_ADAPTER: TypeAdapter[DirectMessage | GaslessMessage] = TypeAdapter(QueueMessage)


class ReceivedMessage(BaseModel):
    """One delivery of a queue message.

    ``receipt_handle`` is opaque to consumers and only used to delete the
    message. ``receive_count`` starts at 1 and grows with every redelivery.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    message_id: str
    body: str
    receipt_handle: str
    receive_count: int = Field(default=1, ge=1)


def serialize_message(message: DirectMessage | GaslessMessage) -> str:
    return message.model_dump_json(by_alias=True, exclude_none=True)


def parse_message_body(body: str | bytes) -> DirectMessage | GaslessMessage:
    """Decode a queue body.

    Raises
    ------
    MessageParseError
        If the body is not JSON or does not match either message type.
    """
    try:
        return _QUEUE_MESSAGE_ADAPTER.validate_json(body)
    except ValidationError as e:
        raise MessageParseError(f"Invalid queue message body: {e.error_count()} validation error(s)") from e


def extract_transaction_id(body: str | bytes) -> str | None:
    """Best-effort read of ``transactionId`` from a body that failed full parsing."""
    try:
        decoded: Any = json.loads(body)
    except (ValueError, TypeError):
        return None
    if not isinstance(decoded, dict):
        return None
    transaction_id = decoded.get("transactionId")
    return transaction_id if isinstance(transaction_id, str) and transaction_id else None
