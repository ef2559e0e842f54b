from __future__ import annotations

from .classifier import ErrorClassifier
from .domain import (
    ClassificationResult,
    ErrorCategory,
    ErrorPattern,
    FailureShape,
    HttpFailure,
    PlainFailure,
    TextFailure,
)
from .extraction import extract_failure, failure_message, failure_status
from .patterns import (
    FAIL_SAFE_REASON,
    NON_RETRYABLE_ERROR_PATTERNS,
    NON_RETRYABLE_HTTP_STATUS_CODES,
    RETRYABLE_ERROR_PATTERNS,
    RETRYABLE_HTTP_STATUS_CODES,
)

__all__ = [
    "FAIL_SAFE_REASON",
    "NON_RETRYABLE_ERROR_PATTERNS",
    "NON_RETRYABLE_HTTP_STATUS_CODES",
    "RETRYABLE_ERROR_PATTERNS",
    "RETRYABLE_HTTP_STATUS_CODES",
    "ClassificationResult",
    "ErrorCategory",
    "ErrorClassifier",
    "ErrorPattern",
    "FailureShape",
    "HttpFailure",
    "PlainFailure",
    "TextFailure",
    "extract_failure",
    "failure_message",
    "failure_status",
]
