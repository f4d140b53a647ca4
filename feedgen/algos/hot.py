import logging
import math
from datetime import datetime

from feedgen import config
from feedgen.algos.base import AppContext, FeedAlgorithm, FeedParams, Page
from feedgen.cursors import decode_score, encode_score
from feedgen.models import Post

logger = logging.getLogger(__name__)

NSFW_LABELS = frozenset({"porn", "sexual", "nudity", "nsfw", "graphic-media"})


def is_excluded(post, banned_terms=()) -> bool:
    """Posts that never rank, whatever their engagement."""
    text = post.text or ""
    if not text.strip():
        return True
    lowered = text.lower()
    if any(term in lowered for term in banned_terms):
        return True
    labels = {label.strip().lower() for label in (post.labels or "").split(",")}
    if labels & NSFW_LABELS:
        return True
    if post.has_image and not post.alt_text:
        return True
    return False


def hot_score(post, now: datetime, gravity: float = config.HOT_GRAVITY, banned_terms=()) -> float:
    """(likes + 1) / (age_hours + 2)^gravity + ln(max(reposts, 1)) / 100, or 0 if excluded."""
    if is_excluded(post, banned_terms):
        return 0.0
    age_hours = max((now - post.indexed_at).total_seconds(), 0) / 3600
    score = (post.likes + 1) / math.pow(age_hours + 2, gravity)
    controversy = math.log(max(post.replies, 1)) / 100
    return score + controversy


class HotFeed(FeedAlgorithm):
    """Time-decayed like ranking over a bounded candidate set.

    Scores depend on the request time, so every request re-scores the whole
    candidate set; `candidate_limit` is what bounds the cost.
    """

    def __init__(
        self,
        name: str = "hot",
        gravity: float = config.HOT_GRAVITY,
        banned_terms=config.BANNED_TERMS,
        candidate_limit: int = config.HOT_CANDIDATES,
        max_limit: int = config.MAX_LIMIT,
    ):
        self.name = name
        self.gravity = gravity
        self.banned_terms = tuple(term.lower() for term in banned_terms if term)
        self.candidate_limit = candidate_limit
        self.max_limit = max_limit

    def candidates(self):
        return (
            Post
            .select(
                Post.uri, Post.indexed_at, Post.text, Post.labels,
                Post.has_image, Post.alt_text, Post.likes, Post.replies,
            )
            .order_by(Post.likes.desc(), Post.indexed_at.desc())
            .limit(self.candidate_limit)
        )

    def rank(self, posts, now: datetime) -> list[tuple[float, str]]:
        ranked = []
        for post in posts:
            score = hot_score(post, now, self.gravity, self.banned_terms)
            if score > 0:
                ranked.append((score, post.uri))
        ranked.sort(reverse=True)
        return ranked

    def handle(self, ctx: AppContext, params: FeedParams, requester_did=None) -> Page:
        limit = min(params.limit, self.max_limit)

        position = decode_score(params.cursor)
        if position is None:
            now = ctx.now()
            ranked = self.rank(self.candidates(), now)
        else:
            # continuation pages are scored at the first page's time
            score, now, uri = position
            ranked = self.rank(self.candidates(), now)
            # strictly lower score, or equal score and lower uri
            ranked = [item for item in ranked if item < (score, uri)]

        page = ranked[:limit]
        cursor = None
        if page and len(ranked) > limit:
            last_score, last_uri = page[-1]
            cursor = encode_score(last_score, now, last_uri)
        return Page([uri for _, uri in page], cursor)
