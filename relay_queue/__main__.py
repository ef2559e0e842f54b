from __future__ import annotations

import asyncio

from .logger import LoggingConfig, configure_logging, get_logger
from .runtime import RelayQueueApp
from .settings import RelayQueueSettings


async def amain(settings: RelayQueueSettings) -> None:
    async with RelayQueueApp(settings) as app:
        await app.arun_until_signal()


def main() -> None:
    configure_logging(LoggingConfig())
    settings = RelayQueueSettings()
    get_logger(__name__).info("Starting relay queue consumers", stream=settings.queue.stream_name)
    asyncio.run(amain(settings))


if __name__ == "__main__":
    main()
