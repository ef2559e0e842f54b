from __future__ import annotations

import json
import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionStatus(StrEnum):
    QUEUED = "queued"
    PROCESSING = "processing"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


TERMINAL_STATUSES: frozenset[TransactionStatus] = frozenset({TransactionStatus.CONFIRMED, TransactionStatus.FAILED})


class TransactionType(StrEnum):
    DIRECT = "direct"
    GASLESS = "gasless"


def _decode_json_object(value: Any) -> Any:
    # asyncpg returns JSONB as text unless a codec is registered
    if isinstance(value, str | bytes):
        return json.loads(value)
    return value


class Transaction(BaseModel):
    """Persisted record of one relayed transaction.

    ``transaction_hash`` and ``confirmed_at`` belong to the external
    confirmation path. They are read here and never written.
    ``retry_on_failure`` is ``None`` for records created before the flag
    existed.
    """

    model_config = ConfigDict(frozen=True, from_attributes=True)

    transaction_id: str
    type: TransactionType
    status: TransactionStatus
    request: dict[str, Any]
    forwarder_address: str | None = None
    retry_on_failure: bool | None = None
    external_submission_id: str | None = None
    assigned_endpoint: str | None = None
    error_message: str | None = None
    transaction_hash: str | None = None
    confirmed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("request", mode="before")
    @classmethod
    def decode_request(cls, value: Any) -> Any:
        return _decode_json_object(value)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class NewTransaction(BaseModel):
    """Insert payload. New records always start as ``queued``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    transaction_id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    type: TransactionType
    request: dict[str, Any]
    forwarder_address: str | None = None
    retry_on_failure: bool = False


class TransactionUpdate(BaseModel):
    """Targeted update of the columns this package owns.

    Only fields that were explicitly set are written, so passing
    ``error_message=None`` clears the column while leaving it out keeps it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: TransactionStatus | None = None
    external_submission_id: str | None = None
    assigned_endpoint: str | None = None
    error_message: str | None = None

    def changes(self) -> dict[str, Any]:
        changes = self.model_dump(exclude_unset=True)
        if changes.get("status") is None:
            changes.pop("status", None)
        return changes
