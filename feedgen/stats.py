import logging
from collections import Counter
from typing import Optional
from urllib.parse import urlparse

from peewee import fn

from feedgen.models import Block, FeedStats, Post

logger = logging.getLogger(__name__)

GUEST = "guest"


def record_fetch(feed: str, requester_did: Optional[str] = None):
    """Count one fetch of `feed`. Best effort: failures are logged, never retried."""
    user = requester_did or GUEST
    try:
        (
            FeedStats
            .insert(feed=feed, user=user, fetches=1)
            .on_conflict(
                conflict_target=[FeedStats.feed, FeedStats.user],
                update={FeedStats.fetches: FeedStats.fetches + 1},
            )
            .execute()
        )
    except Exception as e:
        logger.error(f"Error updating feed stats for {feed} ({user}): {e}")


def fetch_count(feed: str, requester_did: Optional[str] = None) -> int:
    row = FeedStats.get_or_none(
        (FeedStats.feed == feed) & (FeedStats.user == (requester_did or GUEST))
    )
    return row.fetches if row else 0


def feed_totals() -> dict:
    """Total fetches per feed, sorted by feed name."""
    rows = (
        FeedStats
        .select(FeedStats.feed, fn.SUM(FeedStats.fetches).alias("total"))
        .group_by(FeedStats.feed)
        .order_by(FeedStats.feed)
    )
    return {row.feed: row.total for row in rows}


def tag_counts() -> dict:
    counts = Counter()
    for post in Post.select(Post.tags).where(Post.tags != ""):
        for tag in post.tags.split(","):
            tag = tag.strip().lower()
            if tag:
                counts[tag] += 1
    return dict(counts.most_common())


def domain_counts() -> dict:
    counts = Counter()
    for post in Post.select(Post.links).where(Post.links != ""):
        for link in post.links.split(","):
            hostname = urlparse(link.strip()).hostname
            if hostname:
                counts[hostname] += 1
    return dict(counts.most_common())


def block_counts(limit: int = 100) -> dict:
    """Who blocks the most, and who is blocked the most."""
    blockers = (
        Block
        .select(Block.blocker, fn.COUNT(Block.id).alias("count"))
        .group_by(Block.blocker)
        .order_by(fn.COUNT(Block.id).desc())
        .limit(limit)
    )
    blocked = (
        Block
        .select(Block.blocked, fn.COUNT(Block.id).alias("count"))
        .group_by(Block.blocked)
        .order_by(fn.COUNT(Block.id).desc())
        .limit(limit)
    )
    return {
        "blocks": [{"blocker": row.blocker, "blockCount": row.count} for row in blockers],
        "blocked": [{"blocked": row.blocked, "blockedCount": row.count} for row in blocked],
    }
