"""Core module exports."""

from __future__ import annotations

from .enums import HealthCheckStatus
from .exceptions import (
    ConfirmationTimeoutError,
    MessageParseError,
    RelayerConnectionError,
    RelayerError,
    RelayerHTTPError,
    RelayerResponseError,
    RelayQueueError,
    ServiceUnavailableError,
    TransactionNotFoundError,
)

__all__ = [
    "ConfirmationTimeoutError",
    "HealthCheckStatus",
    "MessageParseError",
    "RelayQueueError",
    "RelayerConnectionError",
    "RelayerError",
    "RelayerHTTPError",
    "RelayerResponseError",
    "ServiceUnavailableError",
    "TransactionNotFoundError",
]
