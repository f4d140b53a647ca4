from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from feedgen.models import db, utcnow


@dataclass
class AppContext:
    """What every handler gets: the store and a clock."""

    db: object = db
    clock: Callable[[], datetime] = utcnow

    def now(self) -> datetime:
        return self.clock()


@dataclass
class FeedParams:
    feed: str
    limit: int = 50
    cursor: Optional[str] = None


@dataclass
class Page:
    items: list = field(default_factory=list)
    cursor: Optional[str] = None

    def to_skeleton(self) -> dict:
        body = {"feed": [{"post": uri} for uri in self.items]}
        if self.cursor:
            body["cursor"] = self.cursor
        return body


class FeedAlgorithm:
    """A named ranking policy.

    `handle` builds one page. Algorithms with periodic work (cache fills,
    evictions) set `refresh_interval` and override `refresh`; the server runs
    it on its own timer, never inside a request.
    """

    name: str = ""
    requires_auth: bool = False
    refresh_interval: Optional[float] = None

    def handle(self, ctx: AppContext, params: FeedParams, requester_did: Optional[str] = None) -> Page:
        raise NotImplementedError

    def refresh(self, ctx: AppContext):
        pass

    def __repr__(self):
        return f"<{type(self).__name__} {self.name}>"
