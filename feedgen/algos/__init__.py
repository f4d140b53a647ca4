import logging

from atproto import AtUri, models

from feedgen import config
from feedgen.algos.base import AppContext, FeedAlgorithm, FeedParams, Page
from feedgen.algos.hot import HotFeed
from feedgen.algos.recency import RecencyFeed, alt_mentions, by_authors, has_language, has_tag, missing_alt, tag_contains
from feedgen.algos.snapshot import SnapshotCache, SnapshotFeed
from feedgen.algos.static import PinnedFeed
from feedgen.algos.viewers import ViewerRegistry, ViewersFeed
from feedgen.errors import InvalidRequestError

logger = logging.getLogger(__name__)

NEWS_USA_AUTHORS = [
    "did:plc:6e7kgvbasqauptzi3ax2ehmw",
    "did:plc:oke5nz5jn666qgfqyambysv6",
    "did:plc:dzezcmpb3fhcpns4n4xm4ur5",
    "did:plc:wmho6q2uiyktkam3jsvrms3s",
    "did:plc:v7ch362fhgho32425wdugbto",
    "did:plc:rjuel2idbd5cvtf3toemjznp",
    "did:plc:eclio37ymobqex2ncko63h4r",
    "did:plc:ym6a73dx7kibs6fksyuzewem",
    "did:plc:h5s3fxfvfxsle5q6j4p3ozfv",
    "did:plc:l3lvnqac3azhbpbbyiqxxkzw",
    "did:plc:gvzwgrtlz2wqn3nipmg3fbys",
    "did:plc:anlicnys5zv7r34wjfnko6pc",
    "did:plc:7l75ck5g4b5k6gxqaq5rejit",
]


def unsupported(feed: str) -> InvalidRequestError:
    return InvalidRequestError("UnsupportedAlgorithm", f"Unsupported algorithm: {feed}")


class FeedRegistry:
    """Feed identifier (the generator record's rkey) -> algorithm."""

    def __init__(self, algorithms=()):
        self._algos = {}
        for algo in algorithms:
            self.register(algo)

    def register(self, algo: FeedAlgorithm):
        if algo.name in self._algos:
            raise ValueError(f"Feed {algo.name!r} is already registered")
        self._algos[algo.name] = algo

    def get(self, name: str):
        return self._algos.get(name)

    def resolve(self, feed_uri: str, publisher_did: str = config.PUBLISHER_DID) -> FeedAlgorithm:
        """Find the algorithm behind an at://publisher/app.bsky.feed.generator/<id> uri."""
        try:
            uri = AtUri.from_str(feed_uri)
            name, host, collection = uri.rkey, uri.host, uri.collection
        except Exception as e:
            raise unsupported(feed_uri) from e

        algo = self._algos.get(name)
        if algo is None or host != publisher_did or collection != models.ids.AppBskyFeedGenerator:
            raise unsupported(feed_uri)
        return algo

    def feed_uri(self, name: str, publisher_did: str = config.PUBLISHER_DID) -> str:
        return f"at://{publisher_did}/{models.ids.AppBskyFeedGenerator}/{name}"

    def describe(self, publisher_did: str = config.PUBLISHER_DID) -> list[dict]:
        return [{"uri": self.feed_uri(name, publisher_did)} for name in self._algos]

    def refreshable(self) -> list[FeedAlgorithm]:
        return [algo for algo in self._algos.values() if algo.refresh_interval]

    def __contains__(self, name):
        return name in self._algos

    def __iter__(self):
        return iter(self._algos.values())

    def __len__(self):
        return len(self._algos)


def build_registry() -> FeedRegistry:
    """The feeds this service publishes, each with its own caches."""
    return FeedRegistry([
        RecencyFeed("cats", has_tag("cat", "cats", "kitten") | alt_mentions("cat", "kitten")),
        RecencyFeed("lang-en", has_language("en")),
        RecencyFeed("no-alt", missing_alt()),
        HotFeed("hot"),
        SnapshotFeed("news-usa", by_authors(NEWS_USA_AUTHORS), cache=SnapshotCache()),
        SnapshotFeed("build-in-public", tag_contains("buildinpublic"), cache=SnapshotCache()),
        ViewersFeed("viewers", registry=ViewerRegistry()),
        PinnedFeed("pinned", config.PINNED_POSTS),
    ])


__all__ = [
    "AppContext",
    "FeedAlgorithm",
    "FeedParams",
    "FeedRegistry",
    "Page",
    "build_registry",
]
