from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable
from typing import TYPE_CHECKING

from ..logger import get_logger

if TYPE_CHECKING:
    from types import FrameType

    from structlog.stdlib import BoundLogger

logger: BoundLogger = get_logger(__name__)

SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)


def setup_shutdown_signal_handlers(callback: Callable[[], None]) -> None:
    """Call ``callback`` on SIGTERM or SIGINT.

    Uses the running loop's ``add_signal_handler`` and falls back to
    ``signal.signal`` where the loop does not support it (Windows).
    """
    loop = asyncio.get_running_loop()
    try:
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, _log_and_call, sig, callback)
    except NotImplementedError:

        def _handler(signum: int, frame: FrameType | None) -> None:
            loop.call_soon_threadsafe(_log_and_call, signal.Signals(signum), callback)

        for sig in SHUTDOWN_SIGNALS:
            signal.signal(sig, _handler)


def remove_shutdown_signal_handlers() -> None:
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except NotImplementedError:
            signal.signal(sig, signal.SIG_DFL)


def _log_and_call(sig: signal.Signals, callback: Callable[[], None]) -> None:
    logger.info("Received shutdown signal", signal=sig.name)
    callback()
