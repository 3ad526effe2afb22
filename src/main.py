"""Task maintenance service entry point."""

import asyncio
import logging
import signal

from src.app import create_app
from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def serve() -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    app = create_app()
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await app.scheduler.start()
    try:
        await stop.wait()
    finally:
        await app.scheduler.stop()


def main() -> None:
    """Start the periodic task maintenance scheduler."""
    if not settings.maintenance_enabled:
        logger.warning("MAINTENANCE_ENABLED is false, nothing to schedule")
        return

    logger.info(
        "Starting task maintenance scheduler (cron=%s, tz=%s)...",
        settings.maintenance_cron,
        settings.scheduler_timezone,
    )
    asyncio.run(serve())
    logger.info("Task maintenance scheduler exited")


if __name__ == "__main__":
    main()
