from __future__ import annotations

from .app import RelayQueueApp
from .health import AppHealth, QueueDepth
from .loop import PollLoop
from .signals import remove_shutdown_signal_handlers, setup_shutdown_signal_handlers

__all__ = [
    "AppHealth",
    "PollLoop",
    "QueueDepth",
    "RelayQueueApp",
    "remove_shutdown_signal_handlers",
    "setup_shutdown_signal_handlers",
]
