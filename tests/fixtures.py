"""Event and row builders shared by the test modules."""
from datetime import datetime, timedelta

from feedgen.events import BLOCK, CREATE, DELETE, FOLLOW, LIKE, POST, REPOST, CommitEvent
from feedgen.indexer import LINK_FEATURE, TAG_FEATURE
from feedgen.models import Block, FeedStats, Follow, Post, SubscriptionState

NOW = datetime(2025, 1, 1, 12, 0, 0)

ALICE = "did:plc:alice"
BOB = "did:plc:bob"
CAROL = "did:plc:carol"

PUBLISHER = "did:example:alice"


class Clock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def post_uri(actor: str, rkey: str) -> str:
    return f"at://{actor}/app.bsky.feed.post/{rkey}"


def feed_uri(name: str, publisher: str = PUBLISHER) -> str:
    return f"at://{publisher}/app.bsky.feed.generator/{name}"


def tag_facet(tag: str) -> dict:
    return {
        "index": {"byteStart": 0, "byteEnd": len(tag) + 1},
        "features": [{"$type": TAG_FEATURE, "tag": tag}],
    }


def link_facet(uri: str) -> dict:
    return {
        "index": {"byteStart": 0, "byteEnd": len(uri)},
        "features": [{"$type": LINK_FEATURE, "uri": uri}],
    }


def create_post(actor=ALICE, rkey="p1", text="hello", seq=None, cid="bafypost", **record) -> CommitEvent:
    payload = {
        "$type": "app.bsky.feed.post",
        "text": text,
        "createdAt": "2025-01-01T12:00:00.000Z",
    }
    payload.update(record)
    return CommitEvent(POST, CREATE, actor, rkey, payload, cid=cid, seq=seq)


def delete_post(actor=ALICE, rkey="p1", seq=None) -> CommitEvent:
    return CommitEvent(POST, DELETE, actor, rkey, seq=seq)


def like(subject: str, actor=BOB, rkey="l1", seq=None) -> CommitEvent:
    payload = {"$type": "app.bsky.feed.like", "subject": {"uri": subject, "cid": "bafypost"}}
    return CommitEvent(LIKE, CREATE, actor, rkey, payload, cid="bafylike", seq=seq)


def repost(subject: str, actor=BOB, rkey="r1", seq=None) -> CommitEvent:
    payload = {"$type": "app.bsky.feed.repost", "subject": {"uri": subject, "cid": "bafypost"}}
    return CommitEvent(REPOST, CREATE, actor, rkey, payload, cid="bafyrepost", seq=seq)


def block(subject: str, actor=ALICE, rkey="b1", seq=None) -> CommitEvent:
    return CommitEvent(BLOCK, CREATE, actor, rkey, {"subject": subject}, seq=seq)


def unblock(actor=ALICE, rkey="b1", seq=None) -> CommitEvent:
    return CommitEvent(BLOCK, DELETE, actor, rkey, seq=seq)


def follow(subject: str, actor=ALICE, rkey="f1", seq=None) -> CommitEvent:
    return CommitEvent(FOLLOW, CREATE, actor, rkey, {"subject": subject}, seq=seq)


def unfollow(actor=ALICE, rkey="f1", seq=None) -> CommitEvent:
    return CommitEvent(FOLLOW, DELETE, actor, rkey, seq=seq)


def add_post(rkey: str, indexed_at: datetime, author=ALICE, text="hello world", **fields) -> str:
    """Insert a post row directly, bypassing the indexer."""
    uri = post_uri(author, rkey)
    Post.create(uri=uri, author=author, cid=f"bafy{rkey}", indexed_at=indexed_at, text=text, **fields)
    return uri


def store_state() -> dict:
    """Every row in the store, for whole-state comparisons."""
    return {
        "post": sorted(Post.select().dicts(), key=lambda row: row["uri"]),
        "block": sorted(Block.select().dicts(), key=lambda row: (row["blocker"], row["id"])),
        "follow": sorted(Follow.select().dicts(), key=lambda row: (row["follower"], row["id"])),
        "feed_stats": sorted(FeedStats.select().dicts(), key=lambda row: (row["feed"], row["user"])),
        "sub_state": list(SubscriptionState.select().dicts()),
    }
