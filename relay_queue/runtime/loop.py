from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from ..logger import get_logger

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

logger: BoundLogger = get_logger(__name__)

type Work = Callable[[], Awaitable[object]]


class PollLoop:
    """Runs ``work`` immediately, then again every ``interval_seconds``.

    Stopping sets an ``asyncio.Event``: the sleep between iterations wakes up
    at once and no new iteration starts. An iteration already running gets up
    to ``grace_period_seconds`` to finish before the task is cancelled.
    Exceptions raised by ``work`` are logged and the loop keeps going.

    Usage Pattern
    -------------
    ```python
    loop = PollLoop("main-consumer", consumer.apoll_and_process_once, 1.0, 30.0)
    loop.start()
    ...
    await loop.astop()
    ```
    """

    def __init__(
        self,
        name: str,
        work: Work,
        interval_seconds: float,
        grace_period_seconds: float,
    ) -> None:
        if interval_seconds < 0 or grace_period_seconds < 0:
            raise ValueError("interval_seconds and grace_period_seconds must be non-negative")
        self._name = name
        self._work = work
        self._interval = interval_seconds
        self._grace_period = grace_period_seconds
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._iterations = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def iterations(self) -> int:
        return self._iterations

    def start(self) -> None:
        """Schedule the loop on the running event loop. No-op when already running."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._arun(), name=f"poll-loop:{self._name}")

    async def astop(self) -> None:
        if self._task is None:
            return

        self._stop_event.set()
        task, self._task = self._task, None

        _done, pending = await asyncio.wait({task}, timeout=self._grace_period)
        if pending:
            logger.warning(
                "Poll loop did not finish within grace period, cancelling",
                loop=self._name,
                grace_period_seconds=self._grace_period,
            )
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def _arun(self) -> None:
        logger.info("Poll loop started", loop=self._name, interval_seconds=self._interval)

        while not self._stop_event.is_set():
            try:
                await self._work()
            except Exception as e:
                logger.error("Poll iteration failed", loop=self._name, exc_info=e)
            self._iterations += 1

            if self._stop_event.is_set():
                break
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)

        logger.info("Poll loop stopped", loop=self._name, iterations=self._iterations)
