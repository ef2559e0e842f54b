from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from ..core.exceptions import MessageParseError, TransactionNotFoundError
from ..logger import get_logger, log_context
from ..queue.domain import parse_message_body
from ..resilience import Retry, RetryConfig
from ..store.domain import TransactionStatus, TransactionUpdate
from .config import ConsumerConfig

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from ..errors import ErrorClassifier
    from ..queue.domain import DirectMessage, GaslessMessage, ReceivedMessage
    from ..queue.transport import MessageQueue
    from ..relayer.client import RelayerClient
    from ..routing.domain import RoutingTarget
    from ..routing.router import SmartRouter
    from ..store.repository import TransactionStore

logger: BoundLogger = get_logger(__name__)


class MessageOutcome(StrEnum):
    SUBMITTED = "submitted"
    SKIPPED_TERMINAL = "skipped_terminal"
    SKIPPED_ALREADY_SUBMITTED = "skipped_already_submitted"
    LEFT_FOR_REDELIVERY = "left_for_redelivery"
    FAILED_FAST = "failed_fast"


class MainConsumer:
    """Consumes the main queue and dispatches each transaction exactly once.

    Per message:

    1. Parse the body; a malformed body is left for redelivery.
    2. Load the record; a terminal record is deleted from the queue.
    3. A record with an ``external_submission_id`` was already dispatched:
       the message is deleted without dispatching again.
    4. Mark the record ``processing`` (best effort).
    5. Route and dispatch, waiting only for the relayer's acknowledgment.
    6. Persist ``submitted`` with the external id and endpoint.
    7. Delete the message, only after step 6 succeeded.

    A failed dispatch leaves the message undeleted; the queue redelivers it
    after the visibility timeout and moves it to the dead-letter queue after
    its maximum receive count. Messages of one batch are handled one at a time
    and a failure in one never stops its siblings.
    """

    def __init__(
        self,
        queue: MessageQueue,
        store: TransactionStore,
        router: SmartRouter,
        relayer_client: RelayerClient,
        classifier: ErrorClassifier,
        config: ConsumerConfig | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._queue = queue
        self._store = store
        self._router = router
        self._relayer_client = relayer_client
        self._classifier = classifier
        self._config = config or ConsumerConfig()
        # A missing record is not transient
        self._retry = Retry(
            (retry_config or RetryConfig()).model_copy(update={"never_retry_on": (TransactionNotFoundError,)})
        )

    async def apoll_and_process_once(self) -> int:
        messages = await self._queue.areceive(self._config.wait_time_seconds, self._config.max_messages)
        if not messages:
            return 0

        logger.info("Received messages from queue", count=len(messages))
        for message in messages:
            try:
                await self.ahandle_message(message)
            except Exception as e:
                logger.error(
                    "Unexpected error while handling message, leaving it for redelivery",
                    message_id=message.message_id,
                    exc_info=e,
                )
        return len(messages)

    async def ahandle_message(self, message: ReceivedMessage) -> MessageOutcome:
        try:
            parsed = parse_message_body(message.body)
        except MessageParseError as e:
            logger.error(
                "Malformed queue message, leaving it for redelivery",
                message_id=message.message_id,
                receive_count=message.receive_count,
                error=str(e),
            )
            return MessageOutcome.LEFT_FOR_REDELIVERY

        with log_context(transaction_id=parsed.transaction_id):
            return await self._aprocess(message, parsed)

    async def _aprocess(self, message: ReceivedMessage, parsed: DirectMessage | GaslessMessage) -> MessageOutcome:
        transaction_id = parsed.transaction_id

        try:
            transaction = await self._store.aget(transaction_id)
        except Exception as e:
            logger.error("Failed to load transaction, leaving message for redelivery", exc_info=e)
            return MessageOutcome.LEFT_FOR_REDELIVERY

        if transaction is None:
            logger.warning("Transaction record not found, leaving message for redelivery", message_id=message.message_id)
            return MessageOutcome.LEFT_FOR_REDELIVERY

        if transaction.is_terminal:
            logger.info("Transaction already in terminal state, deleting message", status=transaction.status.value)
            await self._adelete(message)
            return MessageOutcome.SKIPPED_TERMINAL

        if transaction.external_submission_id is not None:
            logger.info(
                "Transaction already submitted, deleting message",
                external_submission_id=transaction.external_submission_id,
            )
            await self._adelete(message)
            return MessageOutcome.SKIPPED_ALREADY_SUBMITTED

        await self._amark_processing(transaction_id)

        target = await self._router.aselect_endpoint()
        try:
            receipt = await self._relayer_client.adispatch(parsed, target)
        except Exception as e:
            return await self._ahandle_dispatch_failure(message, transaction_id, target, e)

        submitted = TransactionUpdate(
            status=TransactionStatus.SUBMITTED,
            external_submission_id=receipt.external_id,
            assigned_endpoint=receipt.endpoint,
        )

        @self._retry
        async def _apersist_submitted() -> None:
            await self._store.aupdate(transaction_id, submitted)

        try:
            await _apersist_submitted()
        except Exception as e:
            logger.error(
                "Dispatched but failed to persist submission, leaving message for redelivery",
                external_submission_id=receipt.external_id,
                endpoint=receipt.endpoint,
                exc_info=e,
            )
            return MessageOutcome.LEFT_FOR_REDELIVERY

        logger.info(
            "Transaction submitted",
            external_submission_id=receipt.external_id,
            endpoint=receipt.endpoint,
        )
        await self._adelete(message)
        return MessageOutcome.SUBMITTED

    async def _amark_processing(self, transaction_id: str) -> None:
        try:
            await self._store.aupdate(transaction_id, TransactionUpdate(status=TransactionStatus.PROCESSING))
        except Exception as e:
            logger.warning("Failed to mark transaction processing, continuing", error=str(e))

    async def _ahandle_dispatch_failure(
        self,
        message: ReceivedMessage,
        transaction_id: str,
        target: RoutingTarget,
        error: Exception,
    ) -> MessageOutcome:
        classification = self._classifier.classify(error)
        logger.error(
            "Dispatch failed",
            endpoint=target.endpoint,
            category=classification.category.value,
            reason=classification.reason,
            http_status=classification.http_status,
            receive_count=message.receive_count,
            error=classification.original_message,
        )

        if classification.is_retryable:
            self._router.invalidate(target.endpoint)

        if not (self._config.fail_fast_non_retryable and not classification.is_retryable):
            return MessageOutcome.LEFT_FOR_REDELIVERY

        failed = TransactionUpdate(
            status=TransactionStatus.FAILED,
            error_message=f"{classification.reason}: {classification.original_message}",
        )
        try:
            await self._store.aupdate(transaction_id, failed)
        except Exception as e:
            logger.error("Failed to mark non-retryable transaction failed, leaving message", exc_info=e)
            return MessageOutcome.LEFT_FOR_REDELIVERY

        logger.warning("Non-retryable failure, transaction marked failed", reason=classification.reason)
        await self._adelete(message)
        return MessageOutcome.FAILED_FAST

    async def _adelete(self, message: ReceivedMessage) -> None:
        try:
            await self._queue.adelete(message.receipt_handle)
        except Exception as e:
            # Redelivery hits the idempotency checks, so this is recoverable
            logger.error("Failed to delete message", message_id=message.message_id, exc_info=e)
