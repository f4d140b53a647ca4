import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse

from feedgen import config, stats
from feedgen.algos import build_registry
from feedgen.errors import InvalidRequestError
from feedgen.feed import FeedService
from feedgen.models import init_db
from feedgen.scheduler import run_periodically

logger = logging.getLogger(__name__)


def start_refresh_tasks(service: FeedService) -> list:
    """One timer per algorithm with periodic work, independent of requests."""
    tasks = []
    for algo in service.registry.refreshable():
        logger.info(f"Starting refresh for {algo.name} every {algo.refresh_interval}s")
        tasks.append(asyncio.create_task(run_periodically(
            f"refresh for algo={algo.name}",
            lambda algo=algo: algo.refresh(service.ctx),
            algo.refresh_interval,
        )))
    return tasks


def create_app(service: FeedService = None, init_store: bool = True) -> FastAPI:
    service = service or FeedService(build_registry())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if init_store:
            init_db()
        tasks = start_refresh_tasks(service)
        yield
        logger.info("Shutting down: stopping refresh tasks...")
        for task in tasks:
            task.cancel()

    # App setup
    app = FastAPI(lifespan=lifespan)
    app.state.feeds = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routes
    @app.get("/", response_class=HTMLResponse)
    async def index():
        return f"""<pre>
    Bluesky Feed Generator
    {config.SERVICE_DID}

    {len(service.registry)} feeds, see /xrpc/app.bsky.feed.describeFeedGenerator
    </pre>"""

    @app.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"

    @app.get("/.well-known/did.json")
    async def did_json():
        if not config.SERVICE_DID.endswith(config.HOSTNAME):
            raise HTTPException(status_code=404)
        return {
            "@context": ["https://www.w3.org/ns/did/v1"],
            "id": config.SERVICE_DID,
            "service": [
                {
                    "id": "#bsky_fg",
                    "type": "BskyFeedGenerator",
                    "serviceEndpoint": f"https://{config.HOSTNAME}"
                }
            ]
        }

    @app.get("/xrpc/app.bsky.feed.describeFeedGenerator")
    async def describe_feed_generator():
        return {
            "did": config.SERVICE_DID,
            "feeds": service.registry.describe(service.publisher_did),
        }

    @app.get("/xrpc/app.bsky.feed.getFeedSkeleton")
    async def get_feed_skeleton(
        request: Request,
        background_tasks: BackgroundTasks,
        feed: str = None,
        cursor: str = None,
        limit: int = None,
    ):
        try:
            result = await service.get_skeleton(
                feed,
                limit=limit,
                cursor=cursor,
                authorization=request.headers.get("authorization"),
            )
        except InvalidRequestError as e:
            logger.warning("Rejected feed request feed=%s: %s", feed, e.message)
            raise HTTPException(status_code=400, detail=e.to_dict())

        # degraded responses count too; runs after the response is sent
        background_tasks.add_task(stats.record_fetch, result.feed_id, result.requester_did)
        return result.page.to_skeleton()

    # Stats (raw data only)
    @app.get("/stats/feeds/json")
    def feed_stats():
        return stats.feed_totals()

    @app.get("/stats/tags/json")
    def tag_stats():
        return stats.tag_counts()

    @app.get("/stats/domains/json")
    def domain_stats():
        return stats.domain_counts()

    @app.get("/stats/blocks/json")
    def block_stats():
        return stats.block_counts()

    return app


app = create_app()


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    logger.info("Starting feed generator...")
    uvicorn.run(app, host=config.LISTENHOST, port=config.PORT)


if __name__ == "__main__":
    main()
