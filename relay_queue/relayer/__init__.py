from __future__ import annotations

from .client import RelayerClient
from .config import RelayerConfig
from .domain import TERMINAL_RELAYER_STATUSES, DispatchReceipt, RelayerProbe, RelayerTransactionStatus
from .forwarder import EXECUTE_SELECTOR, build_forwarder_execute_calldata

__all__ = [
    "EXECUTE_SELECTOR",
    "TERMINAL_RELAYER_STATUSES",
    "DispatchReceipt",
    "RelayerClient",
    "RelayerConfig",
    "RelayerProbe",
    "RelayerTransactionStatus",
    "build_forwarder_execute_calldata",
]
