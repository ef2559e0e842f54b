from __future__ import annotations

from .config import ConsumerConfig, DlqConsumerConfig
from .dlq import (
    MAX_RETRIES_EXCEEDED_REASON,
    PROCESSING_ERROR_PREFIX,
    REPROCESSING_NOT_IMPLEMENTED_REASON,
    DlqConsumer,
    DlqOutcome,
)
from .main import MainConsumer, MessageOutcome

__all__ = [
    "MAX_RETRIES_EXCEEDED_REASON",
    "PROCESSING_ERROR_PREFIX",
    "REPROCESSING_NOT_IMPLEMENTED_REASON",
    "ConsumerConfig",
    "DlqConsumer",
    "DlqConsumerConfig",
    "DlqOutcome",
    "MainConsumer",
    "MessageOutcome",
]
