from __future__ import annotations

import inspect
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from ..logger import get_logger
from .config import RetryConfig

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger
    from tenacity.retry import retry_base

logger: BoundLogger = get_logger(__name__)


def log_before_sleep(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        "Retrying store write after failure",
        function=getattr(retry_state.fn, "__qualname__", None),
        attempt=retry_state.attempt_number,
        error=str(error) if error is not None else None,
    )


class Retry:
    """Async retry decorator backed by tenacity.

    Every exception is retried except the types in
    ``RetryConfig.never_retry_on``, which propagate after the first attempt.
    Only coroutine functions are supported: the writes retried in this
    package are all awaited store calls.

    Usage Pattern
    -------------
    ```python
    persist_retry = Retry(RetryConfig(never_retry_on=(TransactionNotFoundError,)))

    @persist_retry
    async def _amark_failed() -> None:
        await store.aupdate(transaction_id, update)
    ```
    """

    def __init__(self, config: RetryConfig) -> None:
        self._config = config
        self._stop = stop_after_attempt(config.max_attempts)

        # NOTE: full jitter, as in the AWS architecture blog post linked from RetryConfig
        self._wait = wait_random_exponential(
            multiplier=config.multiplier,
            min=config.wait_min,
            max=config.wait_max,
            exp_base=config.exp_base,
        )
        self._retry_condition: retry_base = retry_if_exception_type(Exception)
        if config.never_retry_on:
            self._retry_condition = self._retry_condition & retry_if_not_exception_type(config.never_retry_on)

    def __call__[**P, R](
        self, func: Callable[P, Coroutine[object, object, R]]
    ) -> Callable[P, Coroutine[object, object, R]]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"Retry only wraps coroutine functions, got {func!r}")

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            async for attempt in AsyncRetrying(
                stop=self._stop,
                wait=self._wait,
                retry=self._retry_condition,
                before_sleep=log_before_sleep,
                reraise=self._config.reraise,
            ):
                with attempt:
                    return await func(*args, **kwargs)

            raise RuntimeError(f"Retry loop of {func.__qualname__} ended without a result")

        return wrapper
