import asyncio
import logging

logger = logging.getLogger(__name__)


async def run_periodically(name: str, func, interval: float, run_first: bool = True):
    """Run a blocking job in a worker thread every `interval` seconds.

    A failing run is logged and the schedule carries on.
    """
    if not run_first:
        await asyncio.sleep(interval)
    while True:
        try:
            await asyncio.to_thread(func)
        except Exception as e:
            logger.error(f"Error running {name}: {e}", exc_info=True)
        await asyncio.sleep(interval)
