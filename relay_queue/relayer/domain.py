from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TERMINAL_RELAYER_STATUSES: frozenset[str] = frozenset({"mined", "confirmed", "failed", "reverted"})


class RelayerProbe(BaseModel):
    """First relayer reported by ``GET /relayers`` on one endpoint."""

    model_config = ConfigDict(frozen=True)

    relayer_id: str
    pending_count: int = Field(default=0, ge=0)
    status: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is None or self.status.lower() == "active"


class DispatchReceipt(BaseModel):
    """Synchronous acknowledgment of a dispatch: the relayer accepted the submission."""

    model_config = ConfigDict(frozen=True)

    external_id: str
    endpoint: str
    relayer_id: str


class RelayerTransactionStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    external_id: str
    status: str
    hash: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.lower() in TERMINAL_RELAYER_STATUSES
