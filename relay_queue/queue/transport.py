from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .domain import ReceivedMessage


@runtime_checkable
class MessageQueue(Protocol):
    """Transport contract the producer and consumers rely on.

    Implementations deliver at least once, hide a received message for a
    visibility window, and move messages that exceed a receive count to a
    dead-letter queue on their own.
    """

    async def asend(self, body: str) -> str:
        """Publish ``body`` and return the transport's message id."""
        ...

    async def areceive(self, wait_time_seconds: float, max_messages: int) -> list[ReceivedMessage]:
        """Receive up to ``max_messages``, waiting at most ``wait_time_seconds`` for the first."""
        ...

    async def adelete(self, receipt_handle: str) -> None:
        """Delete a received message for good."""
        ...
