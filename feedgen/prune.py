import asyncio
import logging
from datetime import timedelta

from feedgen import config
from feedgen.models import Block, Follow, Post, init_db, utcnow
from feedgen.scheduler import run_periodically

logger = logging.getLogger(__name__)


def prune(post_ttl: int = config.POST_TTL, edge_ttl: int = config.EDGE_TTL, now=None) -> dict:
    """Delete posts and graph edges older than their TTL (seconds)."""
    now = now or utcnow()
    post_cutoff = now - timedelta(seconds=post_ttl)
    edge_cutoff = now - timedelta(seconds=edge_ttl)

    removed = {
        "posts": Post.delete().where(Post.indexed_at < post_cutoff).execute(),
        "blocks": Block.delete().where(Block.created_at < edge_cutoff).execute(),
        "follows": Follow.delete().where(Follow.created_at < edge_cutoff).execute(),
    }
    logger.info(
        f"Deleted {removed['posts']} posts, {removed['blocks']} blocks, "
        f"{removed['follows']} follows. Post count: {Post.select().count()}"
    )
    return removed


async def run_pruner(
    interval: int = config.PRUNE_INTERVAL,
    post_ttl: int = config.POST_TTL,
    edge_ttl: int = config.EDGE_TTL,
):
    logger.info(f"Pruner started. Sweeping every {interval}s (post ttl {post_ttl}s, edge ttl {edge_ttl}s)")
    await run_periodically("pruner", lambda: prune(post_ttl, edge_ttl), interval, run_first=False)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    init_db()
    asyncio.run(run_pruner())


if __name__ == "__main__":
    main()
