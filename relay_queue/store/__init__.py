from __future__ import annotations

from .domain import (
    TERMINAL_STATUSES,
    NewTransaction,
    Transaction,
    TransactionStatus,
    TransactionType,
    TransactionUpdate,
)
from .repository import TABLE_NAME, PostgresTransactionStore, TransactionStore

__all__ = [
    "TABLE_NAME",
    "TERMINAL_STATUSES",
    "NewTransaction",
    "PostgresTransactionStore",
    "Transaction",
    "TransactionStatus",
    "TransactionStore",
    "TransactionType",
    "TransactionUpdate",
]
