import logging
import threading
from datetime import datetime, timedelta

from feedgen import config
from feedgen.algos.base import AppContext, FeedAlgorithm, FeedParams, Page
from feedgen.algos.recency import by_authors, recency_page

logger = logging.getLogger(__name__)


class ViewerRegistry:
    """Requester DID -> last time they fetched the feed."""

    def __init__(self, ttl: int = config.VIEWER_TTL):
        self.ttl = timedelta(seconds=ttl)
        self._seen = {}
        self._lock = threading.Lock()

    def touch(self, did: str, now: datetime) -> bool:
        """Record a visit; True if the viewer is new (or had expired)."""
        with self._lock:
            last = self._seen.get(did)
            self._seen[did] = now
        return last is None or now - last > self.ttl

    def viewers(self) -> list[str]:
        with self._lock:
            return list(self._seen)

    def sweep(self, now: datetime) -> int:
        with self._lock:
            expired = [did for did, last in self._seen.items() if now - last > self.ttl]
            for did in expired:
                del self._seen[did]
        return len(expired)

    def __contains__(self, did):
        with self._lock:
            return did in self._seen

    def __len__(self):
        with self._lock:
            return len(self._seen)


class ViewersFeed(FeedAlgorithm):
    """Recent posts by whoever has been reading this feed.

    First-time viewers get the welcome posts instead.
    """

    requires_auth = True

    def __init__(
        self,
        name: str = "viewers",
        registry: ViewerRegistry = None,
        welcome=config.PINNED_POSTS,
        max_limit: int = config.MAX_LIMIT,
        sweep_interval: float = config.VIEWER_SWEEP_INTERVAL,
    ):
        self.name = name
        self.registry = registry if registry is not None else ViewerRegistry()
        self.welcome = list(welcome)
        self.max_limit = max_limit
        self.refresh_interval = sweep_interval

    def handle(self, ctx: AppContext, params: FeedParams, requester_did=None) -> Page:
        if not requester_did:
            raise PermissionError(f"{self.name} needs a verified requester")

        limit = min(params.limit, self.max_limit)
        first_visit = self.registry.touch(requester_did, ctx.now())
        logger.info(f"[{self.name}] seen {len(self.registry)} viewers")

        if first_visit and self.welcome:
            return Page(self.welcome[:limit])
        return recency_page(by_authors(self.registry.viewers()), limit, params.cursor)

    def refresh(self, ctx: AppContext):
        removed = self.registry.sweep(ctx.now())
        logger.info(f"[{self.name}] evicted {removed} viewers, {len(self.registry)} remain")
