from __future__ import annotations

from .config import RetryConfig
from .retry import Retry

__all__ = [
    "Retry",
    "RetryConfig",
]
