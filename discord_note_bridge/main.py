"""Entry point for the note bridge."""

from __future__ import annotations

import asyncio
import logging
import signal

from .config import load_config
from .setup import setup_bridge
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)


async def main() -> None:
    """Start the bridge and run until SIGINT/SIGTERM."""
    config = load_config()
    setup_logging(getattr(logging, config.log_level, logging.INFO))

    components = await setup_bridge(config)
    manager = components.manager

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    # SIGHUP: drop the session and start over with a clean backoff state
    loop.add_signal_handler(signal.SIGHUP, lambda: asyncio.create_task(manager.force_reconnect()))

    await manager.initialize()
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down")
        await manager.destroy()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
