from feedgen.algos.base import FeedAlgorithm, Page


class PinnedFeed(FeedAlgorithm):
    """A fixed list of posts, always a single page."""

    def __init__(self, name: str, uris):
        self.name = name
        self.uris = list(uris)

    def handle(self, ctx, params, requester_did=None) -> Page:
        return Page(self.uris[:params.limit])
