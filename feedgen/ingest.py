import asyncio
import json
import logging
import time
from urllib.parse import urlencode

import websockets

from feedgen import config
from feedgen.events import COLLECTIONS, from_jetstream
from feedgen.indexer import Indexer
from feedgen.models import get_cursor, init_db
from feedgen.prune import run_pruner

logger = logging.getLogger(__name__)


def build_subscribe_url(base_url: str, cursor: int = None) -> str:
    """Jetstream subscribe url for the watched collections, resuming at cursor."""
    params = [("wantedCollections", nsid) for nsid in COLLECTIONS]
    if cursor is not None:
        params.append(("cursor", str(cursor)))
    return f"{base_url}?{urlencode(params)}"


def decode_message(message):
    try:
        return from_jetstream(json.loads(message))
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Skipping undecodable message: {e}")
        return None


async def consume(ws, indexer: Indexer, service: str, batch_size: int, flush_interval: float):
    """Read one connection until it closes, applying events in ordered batches.

    A partial batch is applied once it is `flush_interval` seconds old, even if
    the stream has gone quiet.
    """
    batch = []
    started = time.monotonic()

    while True:
        timeout = None
        if batch:
            timeout = max(flush_interval - (time.monotonic() - started), 0)
        try:
            message = await asyncio.wait_for(ws.recv(), timeout)
        except asyncio.TimeoutError:
            message = None
        except websockets.ConnectionClosedOK:
            break

        event = decode_message(message) if message is not None else None
        if event is not None:
            if not batch:
                started = time.monotonic()
            batch.append(event)

        if batch and (len(batch) >= batch_size or time.monotonic() - started >= flush_interval):
            applied = await asyncio.to_thread(indexer.apply_batch, batch, service)
            logger.debug(f"Applied {applied}/{len(batch)} events")
            batch = []

    if batch:
        await asyncio.to_thread(indexer.apply_batch, batch, service)


async def handle_firehose(
    indexer: Indexer,
    url: str = config.JETSTREAM_URL,
    service: str = config.SUBSCRIPTION_SERVICE,
    batch_size: int = config.BATCH_SIZE,
    flush_interval: float = config.FLUSH_INTERVAL,
    reconnect_delay: float = config.RECONNECT_DELAY,
    max_reconnect_delay: float = config.MAX_RECONNECT_DELAY,
):
    """Listen to the event stream forever, resuming from the persisted cursor."""
    delay = reconnect_delay
    while True:
        try:
            cursor = await asyncio.to_thread(get_cursor, service)
            async with websockets.connect(build_subscribe_url(url, cursor), ping_interval=20, ping_timeout=10) as ws:
                logger.info(f"Connected to {url} (cursor={cursor}).")
                delay = reconnect_delay
                await consume(ws, indexer, service, batch_size, flush_interval)
            logger.warning(f"Stream closed by server. Reconnecting in {delay}s...")
        except websockets.ConnectionClosedError as e:
            logger.warning(f"WebSocket closed: {e}. Reconnecting in {delay}s...")
        except Exception as e:
            logger.error(f"Stream error: {e}. Reconnecting in {delay}s...", exc_info=True)

        await asyncio.sleep(delay)
        delay = min(delay * 2, max_reconnect_delay)


# Entrypoint
async def run():
    init_db()
    await asyncio.gather(
        handle_firehose(Indexer()),
        run_pruner(),
    )


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    asyncio.run(run())


if __name__ == "__main__":
    main()
