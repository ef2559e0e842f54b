from __future__ import annotations

from typing import TYPE_CHECKING

from ..logger import get_logger
from .domain import ClassificationResult, ErrorCategory, ErrorPattern
from .extraction import extract_failure, failure_message, failure_status
from .patterns import (
    FAIL_SAFE_REASON,
    NON_RETRYABLE_ERROR_PATTERNS,
    NON_RETRYABLE_HTTP_STATUS_CODES,
    RETRYABLE_ERROR_PATTERNS,
    RETRYABLE_HTTP_STATUS_CODES,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from structlog.stdlib import BoundLogger

logger: BoundLogger = get_logger(__name__)


def _match(patterns: Iterable[ErrorPattern], message: str) -> str | None:
    for pattern in patterns:
        if pattern.matches(message):
            return pattern.description
    return None


class ErrorClassifier:
    """Maps any failure onto the RETRYABLE / NON_RETRYABLE taxonomy.

    Classification order, first match wins:

    1. Non-retryable message patterns (balance, gas, nonce, reverts)
    2. Non-retryable HTTP status codes (400, 401, 403, 422)
    3. Retryable HTTP status codes (408, 429, 500, 502, 503, 504)
    4. Retryable message patterns (timeouts, refused connections, DNS)
    5. Anything else is RETRYABLE: an unknown failure gets another attempt
       instead of being dropped.

    Matching is case-insensitive. The classifier is pure; it performs no I/O.
    """

    def classify(self, error: object) -> ClassificationResult:
        shape = extract_failure(error)
        message = failure_message(shape)
        status = failure_status(shape)

        logger.debug("Classifying error", message=message[:100], http_status=status)

        if reason := _match(NON_RETRYABLE_ERROR_PATTERNS, message):
            return self._result(ErrorCategory.NON_RETRYABLE, reason, message, status)

        if status is not None and status in NON_RETRYABLE_HTTP_STATUS_CODES:
            return self._result(ErrorCategory.NON_RETRYABLE, f"HTTP client error: {status}", message, status)

        if status is not None and status in RETRYABLE_HTTP_STATUS_CODES:
            return self._result(ErrorCategory.RETRYABLE, f"HTTP server error: {status}", message, status)

        if reason := _match(RETRYABLE_ERROR_PATTERNS, message):
            return self._result(ErrorCategory.RETRYABLE, reason, message, status)

        logger.warning("Unknown error pattern, defaulting to RETRYABLE", message=message[:100])
        return self._result(ErrorCategory.RETRYABLE, FAIL_SAFE_REASON, message, status)

    def is_retryable(self, error: object) -> bool:
        return self.classify(error).category is ErrorCategory.RETRYABLE

    def is_non_retryable(self, error: object) -> bool:
        return self.classify(error).category is ErrorCategory.NON_RETRYABLE

    @staticmethod
    def _result(category: ErrorCategory, reason: str, message: str, status: int | None) -> ClassificationResult:
        return ClassificationResult(
            category=category,
            reason=reason,
            original_message=message,
            http_status=status,
        )
