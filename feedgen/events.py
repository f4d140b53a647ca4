from dataclasses import dataclass, field
from typing import Optional

from atproto import models

POST = "post"
LIKE = "like"
REPOST = "repost"
BLOCK = "block"
FOLLOW = "follow"

CREATE = "create"
UPDATE = "update"
DELETE = "delete"

# Short collection names used by the indexer, keyed by lexicon NSID
COLLECTIONS = {
    models.ids.AppBskyFeedPost: POST,
    models.ids.AppBskyFeedLike: LIKE,
    models.ids.AppBskyFeedRepost: REPOST,
    models.ids.AppBskyGraphBlock: BLOCK,
    models.ids.AppBskyGraphFollow: FOLLOW,
}
NSIDS = {name: nsid for nsid, name in COLLECTIONS.items()}


@dataclass(frozen=True)
class CommitEvent:
    """One decoded create/update/delete of a record in an actor's repo."""

    collection: str
    operation: str
    actor: str
    rkey: str
    payload: dict = field(default_factory=dict)
    cid: str = ""
    seq: Optional[int] = None

    @property
    def uri(self) -> str:
        return f"at://{self.actor}/{NSIDS[self.collection]}/{self.rkey}"

    def describe(self) -> str:
        return f"{self.collection}/{self.operation} actor={self.actor} rkey={self.rkey} seq={self.seq}"


def from_jetstream(message: dict) -> Optional[CommitEvent]:
    """Decode a Jetstream message; None for anything that isn't a watched commit."""
    if message.get("kind") != "commit":
        return None
    commit = message.get("commit") or {}
    collection = COLLECTIONS.get(commit.get("collection"))
    operation = commit.get("operation")
    if collection is None or operation not in (CREATE, UPDATE, DELETE):
        return None

    actor = message.get("did")
    rkey = commit.get("rkey")
    if not actor or not rkey:
        return None

    return CommitEvent(
        collection=collection,
        operation=operation,
        actor=actor,
        rkey=rkey,
        payload=commit.get("record") or {},
        cid=commit.get("cid") or "",
        seq=message.get("time_us"),
    )
