from __future__ import annotations

import asyncio
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from ..core.exceptions import MessageParseError
from ..logger import get_logger, log_context
from ..queue.domain import extract_transaction_id, parse_message_body
from ..store.domain import TransactionStatus, TransactionUpdate
from .config import DlqConsumerConfig

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from ..queue.domain import DirectMessage, GaslessMessage, ReceivedMessage
    from ..queue.transport import MessageQueue
    from ..store.repository import TransactionStore

logger: BoundLogger = get_logger(__name__)

MAX_RETRIES_EXCEEDED_REASON: Final[str] = "DLQ: Max retries exceeded"
REPROCESSING_NOT_IMPLEMENTED_REASON: Final[str] = (
    "DLQ: Max retries exceeded (retryOnFailure=true, reprocessing not yet implemented)"
)
PROCESSING_ERROR_PREFIX: Final[str] = "DLQ processing error"


class DlqOutcome(StrEnum):
    FINALIZED = "finalized"
    SKIPPED_TERMINAL = "skipped_terminal"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    ERROR = "error"


class DlqConsumer:
    """Finalizes transactions whose messages exhausted the main queue's retries.

    Every non-terminal record is marked ``failed``. The reason depends on the
    record's ``retry_on_failure`` flag: ``True`` is recorded with a distinct
    reason but is finalized the same way, since there is no reprocessing
    path. Records created before the flag existed have ``None``; the flag
    carried by the message is used for them.

    The DLQ message is deleted after every attempt, whether or not the record
    could be updated, so the dead-letter queue never grows without bound.
    """

    def __init__(
        self,
        dlq: MessageQueue,
        store: TransactionStore,
        config: DlqConsumerConfig | None = None,
    ) -> None:
        self._dlq = dlq
        self._store = store
        self._config = config or DlqConsumerConfig()

    async def apoll_and_process_dlq_once(self) -> int:
        messages = await self._dlq.areceive(self._config.wait_time_seconds, self._config.max_messages)
        if not messages:
            return 0

        logger.info("Received messages from dead-letter queue", count=len(messages))
        for message in messages:
            await self.ahandle_message(message)
        return len(messages)

    async def ahandle_message(self, message: ReceivedMessage) -> DlqOutcome:
        """Finalize the record behind one DLQ message, then delete the message.

        The message is deleted whatever happens to the record. A cancelled
        handler leaves it pending so it is redelivered after the visibility
        timeout.
        """
        cancelled = False
        try:
            return await self._aprocess(message)
        except asyncio.CancelledError:
            cancelled = True
            logger.warning("Dead-letter handling cancelled, message left for redelivery", message_id=message.message_id)
            raise
        finally:
            if not cancelled:
                await self._adelete(message)

    async def _aprocess(self, message: ReceivedMessage) -> DlqOutcome:
        try:
            parsed = parse_message_body(message.body)
        except MessageParseError as e:
            await self._amark_malformed(message, e)
            return DlqOutcome.MALFORMED

        with log_context(transaction_id=parsed.transaction_id):
            try:
                return await self._afinalize(parsed)
            except Exception as e:
                logger.error("Dead-letter processing failed", exc_info=e)
                await self._amark_failed(parsed.transaction_id, f"{PROCESSING_ERROR_PREFIX}: {e}")
                return DlqOutcome.ERROR

    async def _afinalize(self, parsed: DirectMessage | GaslessMessage) -> DlqOutcome:
        transaction = await self._store.aget(parsed.transaction_id)
        if transaction is None:
            logger.warning("Dead-lettered transaction not found")
            return DlqOutcome.NOT_FOUND

        if transaction.is_terminal:
            logger.info("Dead-lettered transaction already terminal", status=transaction.status.value)
            return DlqOutcome.SKIPPED_TERMINAL

        retry_on_failure = (
            transaction.retry_on_failure if transaction.retry_on_failure is not None else parsed.retry_on_failure
        )
        if retry_on_failure:
            # No reprocessing path yet: finalized like any other exhausted transaction
            reason = REPROCESSING_NOT_IMPLEMENTED_REASON
        else:
            reason = MAX_RETRIES_EXCEEDED_REASON

        await self._amark_failed(parsed.transaction_id, reason)
        return DlqOutcome.FINALIZED

    async def _amark_malformed(self, message: ReceivedMessage, error: MessageParseError) -> None:
        logger.error("Malformed dead-letter message", message_id=message.message_id, error=str(error))
        transaction_id = extract_transaction_id(message.body)
        if transaction_id is None:
            return

        try:
            transaction = await self._store.aget(transaction_id)
        except Exception as e:
            logger.error("Failed to load transaction of malformed message", transaction_id=transaction_id, exc_info=e)
            return

        if transaction is not None and not transaction.is_terminal:
            await self._amark_failed(transaction_id, f"{PROCESSING_ERROR_PREFIX}: {error}")

    async def _amark_failed(self, transaction_id: str, reason: str) -> None:
        try:
            await self._store.aupdate(
                transaction_id,
                TransactionUpdate(status=TransactionStatus.FAILED, error_message=reason),
            )
        except Exception as e:
            logger.error("Failed to mark dead-lettered transaction failed", transaction_id=transaction_id, exc_info=e)
            return
        logger.info("Dead-lettered transaction marked failed", transaction_id=transaction_id, reason=reason)

    async def _adelete(self, message: ReceivedMessage) -> None:
        try:
            await self._dlq.adelete(message.receipt_handle)
        except Exception as e:
            logger.critical(
                "Failed to delete dead-letter message, it will be redelivered",
                message_id=message.message_id,
                exc_info=e,
            )
