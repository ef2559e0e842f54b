from __future__ import annotations

from .domain import EnqueueResult, TransactionIntent
from .service import Producer

__all__ = [
    "EnqueueResult",
    "Producer",
    "TransactionIntent",
]
