import logging
from datetime import datetime, timezone

from peewee import (
    BigIntegerField,
    BooleanField,
    CompositeKey,
    DatabaseProxy,
    DateTimeField,
    IntegerField,
    Model,
    SqliteDatabase,
    TextField,
)

from feedgen import config

logger = logging.getLogger(__name__)

# Bound to a real database by init_db()
db = DatabaseProxy()


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTimeField is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel(Model):
    class Meta:
        database = db


class Post(BaseModel):
    uri = TextField(primary_key=True)
    author = TextField(index=True)
    cid = TextField()
    indexed_at = DateTimeField(index=True)
    text = TextField(default="")
    langs = TextField(default="")       # comma joined, e.g. "en,es"
    likes = IntegerField(default=0, index=True)
    replies = IntegerField(default=0)   # bumped by reposts
    labels = TextField(default="")      # comma joined self-label values
    has_image = BooleanField(default=False)
    alt_text = TextField(default="")    # JSON list of non-empty image alt strings
    embed_url = TextField(default="")
    tags = TextField(default="", index=True)
    links = TextField(default="")
    root_post_uri = TextField(default="")

    class Meta:
        table_name = "post"


class Block(BaseModel):
    id = TextField()                    # rkey of the block record
    blocker = TextField()
    blocked = TextField()
    created_at = DateTimeField(index=True)

    class Meta:
        table_name = "block"
        primary_key = CompositeKey("blocker", "id")


class Follow(BaseModel):
    id = TextField()                    # rkey of the follow record
    follower = TextField()
    followed = TextField()
    created_at = DateTimeField(index=True)

    class Meta:
        table_name = "follow"
        primary_key = CompositeKey("follower", "id")


class FeedStats(BaseModel):
    feed = TextField()
    user = TextField()                  # requester DID or "guest"
    fetches = IntegerField(default=0)

    class Meta:
        table_name = "feed_stats"
        primary_key = CompositeKey("feed", "user")


class SubscriptionState(BaseModel):
    service = TextField(primary_key=True)
    cursor = BigIntegerField()

    class Meta:
        table_name = "sub_state"


MODELS = [Post, Block, Follow, FeedStats, SubscriptionState]


def init_db(location: str = None):
    """Connects to the store and ensures tables exist."""
    database = SqliteDatabase(
        location or config.SQLITE_LOCATION,
        pragmas={"journal_mode": "wal"},
        timeout=10,
    )
    db.initialize(database)
    db.connect(reuse_if_open=True)
    db.create_tables(MODELS, safe=True)
    logger.info("Database initialized and tables ensured.")
    return database


def get_cursor(service: str):
    row = SubscriptionState.get_or_none(SubscriptionState.service == service)
    return row.cursor if row else None


def save_cursor(service: str, cursor: int):
    (
        SubscriptionState
        .insert(service=service, cursor=cursor)
        .on_conflict(
            conflict_target=[SubscriptionState.service],
            update={SubscriptionState.cursor: cursor},
        )
        .execute()
    )
