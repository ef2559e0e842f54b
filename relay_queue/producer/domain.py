from __future__ import annotations

from datetime import datetime
from typing import Literal, Self

from pydantic import BaseModel, ConfigDict, model_validator

from ..queue.domain import DirectMessage, DirectRequest, GaslessMessage, GaslessRequest
from ..store.domain import TransactionStatus, TransactionType


class TransactionIntent(BaseModel):
    """A validated request to relay one transaction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: TransactionType
    request: DirectRequest | GaslessRequest
    forwarder_address: str | None = None
    retry_on_failure: bool = False

    @model_validator(mode="after")
    def check_request_matches_type(self) -> Self:
        if self.type is TransactionType.DIRECT:
            if not isinstance(self.request, DirectRequest):
                raise ValueError("direct intents carry a DirectRequest")
            if self.forwarder_address is not None:
                raise ValueError("direct intents have no forwarder_address")
        else:
            if not isinstance(self.request, GaslessRequest):
                raise ValueError("gasless intents carry a GaslessRequest")
            if not self.forwarder_address:
                raise ValueError("gasless intents require a forwarder_address")
        return self

    @classmethod
    def direct(cls, request: DirectRequest, *, retry_on_failure: bool = False) -> TransactionIntent:
        return cls(type=TransactionType.DIRECT, request=request, retry_on_failure=retry_on_failure)

    @classmethod
    def gasless(
        cls,
        request: GaslessRequest,
        forwarder_address: str,
        *,
        retry_on_failure: bool = False,
    ) -> TransactionIntent:
        return cls(
            type=TransactionType.GASLESS,
            request=request,
            forwarder_address=forwarder_address,
            retry_on_failure=retry_on_failure,
        )

    def to_message(self, transaction_id: str) -> DirectMessage | GaslessMessage:
        if isinstance(self.request, DirectRequest):
            return DirectMessage(
                transaction_id=transaction_id,
                request=self.request,
                retry_on_failure=self.retry_on_failure,
            )
        return GaslessMessage(
            transaction_id=transaction_id,
            request=self.request,
            forwarder_address=self.forwarder_address or "",
            retry_on_failure=self.retry_on_failure,
        )


class EnqueueResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    transaction_id: str
    status: Literal[TransactionStatus.QUEUED] = TransactionStatus.QUEUED
    created_at: datetime
