from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.exceptions import ServiceUnavailableError, TransactionNotFoundError
from ..logger import get_logger
from ..queue.domain import serialize_message
from ..resilience import Retry, RetryConfig
from ..store.domain import NewTransaction, TransactionStatus, TransactionUpdate
from .domain import EnqueueResult, TransactionIntent

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from ..queue.domain import DirectRequest, GaslessRequest
    from ..queue.transport import MessageQueue
    from ..store.domain import Transaction
    from ..store.repository import TransactionStore

logger: BoundLogger = get_logger(__name__)


class Producer:
    """Accepts transaction intents: persist first, then publish.

    The record is written as ``queued`` before the message is published, so a
    consumer never receives a message without a record behind it. When the
    publish fails the record is moved to ``failed`` with the publish error. If
    that rollback write also fails after retries, the record stays ``queued``
    and the failure is logged; it remains visible through status queries.

    Callers see either an ``EnqueueResult`` for a message that was actually
    published, or ``ServiceUnavailableError``.
    """

    def __init__(
        self,
        store: TransactionStore,
        queue: MessageQueue,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._store = store
        self._queue = queue
        # A missing record is not transient
        self._retry = Retry(
            (retry_config or RetryConfig()).model_copy(update={"never_retry_on": (TransactionNotFoundError,)})
        )

    async def aenqueue_direct(self, request: DirectRequest, retry_on_failure: bool = False) -> EnqueueResult:
        return await self.aenqueue(TransactionIntent.direct(request, retry_on_failure=retry_on_failure))

    async def aenqueue_gasless(
        self,
        request: GaslessRequest,
        forwarder_address: str,
        retry_on_failure: bool = False,
    ) -> EnqueueResult:
        return await self.aenqueue(
            TransactionIntent.gasless(request, forwarder_address, retry_on_failure=retry_on_failure)
        )

    async def aenqueue(self, intent: TransactionIntent) -> EnqueueResult:
        new = NewTransaction(
            type=intent.type,
            request=intent.request.model_dump(mode="json", by_alias=True, exclude_none=True),
            forwarder_address=intent.forwarder_address,
            retry_on_failure=intent.retry_on_failure,
        )

        try:
            transaction = await self._store.acreate(new)
        except Exception as e:
            logger.error("Failed to persist transaction", transaction_id=new.transaction_id, exc_info=e)
            raise ServiceUnavailableError("Transaction store unavailable") from e

        body = serialize_message(intent.to_message(transaction.transaction_id))
        try:
            message_id = await self._queue.asend(body)
        except Exception as e:
            logger.error("Failed to publish transaction", transaction_id=transaction.transaction_id, exc_info=e)
            await self._arollback(transaction.transaction_id, e)
            raise ServiceUnavailableError("Transaction queue unavailable") from e

        logger.info(
            "Transaction queued",
            transaction_id=transaction.transaction_id,
            type=intent.type.value,
            message_id=message_id,
        )
        return EnqueueResult(transaction_id=transaction.transaction_id, created_at=transaction.created_at)

    async def _arollback(self, transaction_id: str, error: Exception) -> None:
        update = TransactionUpdate(
            status=TransactionStatus.FAILED,
            error_message=f"Queue publish failed: {str(error) or type(error).__name__}",
        )

        @self._retry
        async def _amark_failed() -> None:
            await self._store.aupdate(transaction_id, update)

        try:
            await _amark_failed()
        except Exception as e:
            logger.error(
                "Rollback failed, transaction left queued",
                transaction_id=transaction_id,
                exc_info=e,
            )
        else:
            logger.warning("Transaction rolled back to failed", transaction_id=transaction_id)

    async def aget_status(self, transaction_id: str) -> Transaction:
        transaction = await self._store.aget(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        return transaction
