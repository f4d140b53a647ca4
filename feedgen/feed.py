import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from atproto import models

from feedgen import config
from feedgen.algos import AppContext, FeedParams, FeedRegistry, Page
from feedgen.auth import Verifier
from feedgen.errors import InvalidRequestError

logger = logging.getLogger(__name__)

GET_FEED_SKELETON = models.ids.AppBskyFeedGetFeedSkeleton


@dataclass
class FeedResult:
    feed_id: str
    page: Page
    requester_did: Optional[str] = None
    failed: bool = False


class FeedService:
    """The getFeedSkeleton boundary.

    Validation problems (missing or unknown feed) are raised as
    InvalidRequestError. Anything that goes wrong after that, including auth,
    store errors and the handler deadline, is logged and answered with an
    empty feed so clients keep working.
    """

    def __init__(
        self,
        registry: FeedRegistry,
        ctx: AppContext = None,
        verifier=None,
        publisher_did: str = config.PUBLISHER_DID,
        default_limit: int = config.DEFAULT_LIMIT,
        max_limit: int = config.MAX_LIMIT,
        timeout: float = config.HANDLER_TIMEOUT,
    ):
        self.registry = registry
        self.ctx = ctx or AppContext()
        self.verifier = verifier or Verifier()
        self.publisher_did = publisher_did
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.timeout = timeout

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            return self.default_limit
        return max(1, min(limit, self.max_limit))

    async def get_skeleton(
        self,
        feed: Optional[str],
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
        authorization: Optional[str] = None,
    ) -> FeedResult:
        if not feed:
            raise InvalidRequestError("MissingFeed", "Missing feed parameter")
        algo = self.registry.resolve(feed, self.publisher_did)
        params = FeedParams(feed=feed, limit=self.clamp_limit(limit), cursor=cursor or None)

        requester_did = None
        try:
            if algo.requires_auth:
                requester_did = await asyncio.to_thread(self.verifier, authorization, GET_FEED_SKELETON)
            logger.info(f"[{algo.name}] {requester_did or 'unknown'} {params}")
            page = await asyncio.wait_for(
                asyncio.to_thread(algo.handle, self.ctx, params, requester_did),
                timeout=self.timeout,
            )
        except Exception as e:
            logger.error(
                f"Error in feed generation algo={algo.name} requester={requester_did or 'unknown'} "
                f"params={params}: {e!r}",
                exc_info=True,
            )
            return FeedResult(algo.name, Page(), requester_did, failed=True)

        logger.info(f"[{algo.name}] generated {len(page.items)} posts (cursor={page.cursor})")
        return FeedResult(algo.name, page, requester_did)
