import logging

from feedgen import config
from feedgen.algos.base import AppContext, FeedAlgorithm, FeedParams, Page
from feedgen.cursors import decode_id, encode_id
from feedgen.models import Post

logger = logging.getLogger(__name__)


class SnapshotCache:
    """Ordered post uris, replaced wholesale.

    A refresh builds the new tuple first and swaps the reference in one
    assignment, so readers see either the old snapshot or the new one.
    """

    def __init__(self, items=()):
        self._items = tuple(items)

    @property
    def items(self) -> tuple:
        return self._items

    def replace(self, items):
        self._items = tuple(items)

    def __len__(self):
        return len(self._items)


class SnapshotFeed(FeedAlgorithm):
    """Paginates an in-memory snapshot refreshed on a timer."""

    def __init__(
        self,
        name: str,
        where,
        cache: SnapshotCache = None,
        size: int = config.SNAPSHOT_SIZE,
        page_limit: int = config.SNAPSHOT_PAGE_LIMIT,
        refresh_interval: float = config.REFRESH_INTERVAL,
    ):
        self.name = name
        self.where = where
        self.cache = cache if cache is not None else SnapshotCache()
        self.size = size
        self.page_limit = page_limit
        self.refresh_interval = refresh_interval

    def refresh(self, ctx: AppContext):
        rows = (
            Post
            .select(Post.uri)
            .where(self.where)
            .order_by(Post.indexed_at.desc(), Post.uri.desc())
            .limit(self.size)
        )
        self.cache.replace(row.uri for row in rows)
        logger.info(f"[{self.name}] snapshot refreshed with {len(self.cache)} posts")

    def handle(self, ctx: AppContext, params: FeedParams, requester_did=None) -> Page:
        items = self.cache.items
        limit = min(params.limit, self.page_limit)

        start = 0
        after = decode_id(params.cursor)
        if after is not None:
            try:
                start = items.index(after) + 1
            except ValueError:
                # cursor from an older snapshot, start over
                start = 0

        page = items[start:start + limit]
        cursor = encode_id(page[-1]) if page and start + limit < len(items) else None
        return Page(list(page), cursor)
