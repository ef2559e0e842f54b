"""Exception hierarchy shared across relay-queue components."""

from __future__ import annotations

from typing import Any


class RelayQueueError(Exception):
    """Base class for all relay-queue errors."""


class ServiceUnavailableError(RelayQueueError):
    """A transaction could not be accepted because a dependency is down."""


class TransactionNotFoundError(RelayQueueError):
    def __init__(self, transaction_id: str) -> None:
        super().__init__(f"Transaction not found: {transaction_id}")
        self.transaction_id = transaction_id


class MessageParseError(RelayQueueError):
    """A queue message body could not be decoded into a QueueMessage."""


class RelayerError(RelayQueueError):
    """Base class for failures talking to a relayer endpoint."""

    def __init__(self, message: str, *, endpoint: str | None = None) -> None:
        super().__init__(message)
        self.endpoint = endpoint


class RelayerHTTPError(RelayerError):
    """The relayer answered with a non-2xx status.

    Parameters
    ----------
    message : str
        Human readable summary of the failed request.
    status_code : int
        HTTP status returned by the relayer.
    body : Any
        Decoded JSON body when available, otherwise the raw text.
    endpoint : str | None
        Relayer endpoint the request targeted.
    """

    def __init__(self, message: str, *, status_code: int, body: Any = None, endpoint: str | None = None) -> None:
        super().__init__(message, endpoint=endpoint)
        self.status_code = status_code
        self.body = body


class RelayerConnectionError(RelayerError):
    """Timeouts, refused connections and other transport level failures."""


class RelayerResponseError(RelayerError):
    """The relayer answered 2xx with a payload we cannot use."""


class ConfirmationTimeoutError(RelayerError):
    def __init__(self, external_id: str, attempts: int, *, endpoint: str | None = None) -> None:
        super().__init__(
            f"Transaction {external_id} did not reach terminal status after {attempts} attempts",
            endpoint=endpoint,
        )
        self.external_id = external_id
        self.attempts = attempts
