from __future__ import annotations

import json
from typing import TYPE_CHECKING, Final, Protocol, runtime_checkable

from ..core.exceptions import TransactionNotFoundError
from ..logger import get_logger
from .domain import NewTransaction, Transaction, TransactionStatus, TransactionUpdate

if TYPE_CHECKING:
    from asyncpg import Record
    from structlog.stdlib import BoundLogger

    from ..infrastructure.postgres.pool import AsyncConnectionPool

logger: BoundLogger = get_logger(__name__)

TABLE_NAME: Final[str] = "relay_transactions"

_SCHEMA_DDL: Final[str] = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    transaction_id          TEXT PRIMARY KEY,
    type                    TEXT NOT NULL,
    status                  TEXT NOT NULL,
    request                 JSONB NOT NULL,
    forwarder_address       TEXT,
    retry_on_failure        BOOLEAN,
    external_submission_id  TEXT,
    assigned_endpoint       TEXT,
    error_message           TEXT,
    transaction_hash        TEXT,
    confirmed_at            TIMESTAMPTZ,
    created_at              TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at              TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS {TABLE_NAME}_status_idx ON {TABLE_NAME} (status);
"""

_INSERT_SQL: Final[str] = f"""
INSERT INTO {TABLE_NAME} (transaction_id, type, status, request, forwarder_address, retry_on_failure)
VALUES ($1, $2, $3, $4::jsonb, $5, $6)
RETURNING *
"""

_SELECT_SQL: Final[str] = f"SELECT * FROM {TABLE_NAME} WHERE transaction_id = $1"

# Columns a TransactionUpdate may touch; anything else is never interpolated into SQL
_UPDATABLE_COLUMNS: Final[tuple[str, ...]] = ("status", "external_submission_id", "assigned_endpoint", "error_message")


@runtime_checkable
class TransactionStore(Protocol):
    """Point lookups and targeted updates of transaction records."""

    async def acreate(self, new: NewTransaction) -> Transaction: ...

    async def aget(self, transaction_id: str) -> Transaction | None: ...

    async def aupdate(self, transaction_id: str, update: TransactionUpdate) -> Transaction:
        """Write the fields set on ``update``.

        Raises
        ------
        TransactionNotFoundError
            If no record has ``transaction_id``.
        """
        ...


def _to_transaction(row: Record) -> Transaction:
    return Transaction.model_validate(dict(row))


class PostgresTransactionStore:
    """``TransactionStore`` on PostgreSQL through the shared asyncpg pool."""

    def __init__(self, pool: AsyncConnectionPool) -> None:
        self._pool = pool

    async def acreate_schema(self) -> None:
        async with self._pool.atransaction() as conn:
            await conn.execute(_SCHEMA_DDL)
        logger.info("Transaction table ready", table=TABLE_NAME)

    async def acreate(self, new: NewTransaction) -> Transaction:
        row = await self._pool.afetchrow(
            _INSERT_SQL,
            new.transaction_id,
            new.type.value,
            TransactionStatus.QUEUED.value,
            json.dumps(new.request),
            new.forwarder_address,
            new.retry_on_failure,
        )
        if row is None:
            raise RuntimeError(f"Insert of transaction {new.transaction_id} returned no row")
        return _to_transaction(row)

    async def aget(self, transaction_id: str) -> Transaction | None:
        row = await self._pool.afetchrow(_SELECT_SQL, transaction_id)
        return _to_transaction(row) if row is not None else None

    async def aupdate(self, transaction_id: str, update: TransactionUpdate) -> Transaction:
        changes = update.changes()
        if not changes:
            raise ValueError("TransactionUpdate has no fields set")

        columns = [column for column in _UPDATABLE_COLUMNS if column in changes]
        assignments = ", ".join(f"{column} = ${position}" for position, column in enumerate(columns, start=2))
        query = f"UPDATE {TABLE_NAME} SET {assignments}, updated_at = now() WHERE transaction_id = $1 RETURNING *"
        values = [str(changes[c]) if c == "status" else changes[c] for c in columns]

        row = await self._pool.afetchrow(query, transaction_id, *values)
        if row is None:
            raise TransactionNotFoundError(transaction_id)

        logger.debug("Transaction updated", transaction_id=transaction_id, fields=columns)
        return _to_transaction(row)
