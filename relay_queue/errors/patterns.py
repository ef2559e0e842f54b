"""Classification tables for relayer and network failures.

Order matters: tables are scanned top to bottom and the first match wins.
"""

from __future__ import annotations

from .domain import ErrorPattern

# Failures that will fail again no matter how often they are retried
NON_RETRYABLE_ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern.of(r"insufficient funds", "Insufficient balance for transaction"),
    ErrorPattern.of(r"insufficient balance", "Insufficient balance for transaction"),
    ErrorPattern.of(r"gas required exceeds allowance", "Gas limit exceeded allowance"),
    ErrorPattern.of(r"intrinsic gas too low", "Insufficient gas provided"),
    ErrorPattern.of(r"out of gas", "Transaction ran out of gas"),
    ErrorPattern.of(r"nonce too low", "Nonce already used"),
    ErrorPattern.of(r"nonce already used", "Nonce already used"),
    ErrorPattern.of(r"execution reverted", "Smart contract execution reverted"),
    ErrorPattern.of(r"transaction would revert", "Transaction simulation failed"),
)

NON_RETRYABLE_HTTP_STATUS_CODES: frozenset[int] = frozenset({400, 401, 403, 422})

RETRYABLE_HTTP_STATUS_CODES: frozenset[int] = frozenset({408, 429, 500, 502, 503, 504})

# Errno-style codes come first so the generic timeout pattern does not shadow ETIMEDOUT
RETRYABLE_ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern.of(r"ECONNREFUSED", "Connection refused (ECONNREFUSED)"),
    ErrorPattern.of(r"ETIMEDOUT", "Connection timed out (ETIMEDOUT)"),
    ErrorPattern.of(r"ENOTFOUND", "DNS lookup failed (ENOTFOUND)"),
    # Whole word on at least one side: "TimeoutError" and "ReadTimeout" match, "runtime output" does not
    ErrorPattern.of(r"\btime(d)?\s?out|time(d)?\s?out\b", "Network timeout"),
    ErrorPattern.of(r"connection refused", "Connection refused"),
    ErrorPattern.of(r"socket hang up", "Socket hang up"),
)

FAIL_SAFE_REASON = "Unknown error - defaulting to retryable (fail-safe)"
