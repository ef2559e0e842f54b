"""Unit tests for the Retry decorator."""

from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from relay_queue.core.exceptions import TransactionNotFoundError
from relay_queue.resilience import Retry, RetryConfig


@pytest.fixture
def no_wait() -> RetryConfig:
    return RetryConfig(max_attempts=3, wait_min=0, wait_max=0, multiplier=0)


class FlakyStore:
    """Store write that fails a fixed number of times before landing."""

    def __init__(self, failures: list[Exception]) -> None:
        self.failures = failures
        self.attempts = 0

    async def aupdate(self, transaction_id: str) -> str:
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        return transaction_id


class TestRetry:
    """Attempts, exhaustion and exempt exception types."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_absorbed(self, no_wait: RetryConfig) -> None:
        """Test a write that fails twice and then lands looks like one call."""
        store = FlakyStore([ConnectionError("reset"), TimeoutError()])

        result = await Retry(no_wait)(store.aupdate)("tx-1")

        assert result == "tx-1"
        assert store.attempts == 3

    @pytest.mark.asyncio
    async def test_last_error_is_raised_when_exhausted(self, no_wait: RetryConfig) -> None:
        """Test the final failure propagates unchanged after max_attempts."""
        store = FlakyStore([ConnectionError(f"attempt {i}") for i in range(1, 5)])

        with pytest.raises(ConnectionError, match="attempt 3"):
            await Retry(no_wait)(store.aupdate)("tx-1")

        assert store.attempts == 3

    @pytest.mark.asyncio
    async def test_never_retry_on_raises_immediately(self, no_wait: RetryConfig) -> None:
        """Test an exempt exception type is raised after the first attempt."""
        store = FlakyStore([TransactionNotFoundError("tx-1")])
        config = no_wait.model_copy(update={"never_retry_on": (TransactionNotFoundError,)})

        with pytest.raises(TransactionNotFoundError):
            await Retry(config)(store.aupdate)("tx-1")

        assert store.attempts == 1

    @pytest.mark.asyncio
    async def test_other_errors_still_retried_with_exemptions(self, no_wait: RetryConfig) -> None:
        """Test exemptions leave every other exception retryable."""
        store = FlakyStore([ConnectionError("reset")])
        config = no_wait.model_copy(update={"never_retry_on": (TransactionNotFoundError,)})

        assert await Retry(config)(store.aupdate)("tx-1") == "tx-1"
        assert store.attempts == 2

    @pytest.mark.asyncio
    async def test_each_retry_is_logged(self, no_wait: RetryConfig) -> None:
        """Test a warning names the function and attempt before every sleep."""
        store = FlakyStore([ConnectionError("reset"), ConnectionError("reset")])

        with capture_logs() as logs:
            await Retry(no_wait)(store.aupdate)("tx-1")

        retries = [entry for entry in logs if entry["event"] == "Retrying store write after failure"]
        assert [entry["attempt"] for entry in retries] == [1, 2]
        assert retries[0]["function"] == "FlakyStore.aupdate"
        assert retries[0]["error"] == "reset"

    @pytest.mark.asyncio
    async def test_wrapper_keeps_signature_and_metadata(self, no_wait: RetryConfig) -> None:
        """Test arguments pass through and the wrapped name survives."""

        @Retry(no_wait)
        async def amark_failed(transaction_id: str, *, reason: str = "unknown") -> str:
            """Mark a record failed."""
            return f"{transaction_id}:{reason}"

        assert await amark_failed("tx-1", reason="publish failed") == "tx-1:publish failed"
        assert amark_failed.__name__ == "amark_failed"
        assert amark_failed.__doc__ == "Mark a record failed."

    def test_rejects_sync_functions(self, no_wait: RetryConfig) -> None:
        """Test only coroutine functions can be wrapped."""

        def sync_write() -> None: ...

        with pytest.raises(TypeError, match="coroutine functions"):
            Retry(no_wait)(sync_write)
