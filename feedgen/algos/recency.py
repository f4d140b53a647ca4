from peewee import Value

from feedgen import config
from feedgen.algos.base import AppContext, FeedAlgorithm, FeedParams, Page
from feedgen.cursors import decode_keyset, encode_keyset
from feedgen.models import Post


# Filters (peewee expressions over Post)

def _in_list(column, value: str):
    """Membership in a comma joined column, case-insensitive."""
    padded = Value(",").concat(column).concat(",")
    return padded.contains(f",{value},")


def has_tag(*tags):
    expr = _in_list(Post.tags, tags[0])
    for tag in tags[1:]:
        expr = expr | _in_list(Post.tags, tag)
    return expr


def has_language(lang: str):
    return _in_list(Post.langs, lang)


def by_authors(dids):
    return Post.author.in_(list(dids))


def tag_contains(text: str):
    return Post.tags.contains(text)


def alt_mentions(*words):
    expr = Post.alt_text.contains(words[0])
    for word in words[1:]:
        expr = expr | Post.alt_text.contains(word)
    return expr


def missing_alt():
    return (Post.has_image == True) & (Post.alt_text == "")


def recency_page(where, limit: int, cursor: str = None) -> Page:
    """Newest first by (indexed_at, uri), continuing strictly after the cursor's key."""
    query = (
        Post
        .select(Post.uri, Post.indexed_at)
        .where(where)
        .order_by(Post.indexed_at.desc(), Post.uri.desc())
        .limit(limit)
    )

    position = decode_keyset(cursor)
    if position is not None:
        indexed_at, uri = position
        if uri is None:
            query = query.where(Post.indexed_at < indexed_at)
        else:
            query = query.where(
                (Post.indexed_at < indexed_at)
                | ((Post.indexed_at == indexed_at) & (Post.uri < uri))
            )

    rows = list(query)
    next_cursor = None
    if rows and len(rows) == limit:
        next_cursor = encode_keyset(rows[-1].indexed_at, rows[-1].uri)
    return Page([row.uri for row in rows], next_cursor)


class RecencyFeed(FeedAlgorithm):
    """Posts matching a fixed filter, newest first."""

    def __init__(self, name: str, where, max_limit: int = config.MAX_LIMIT):
        self.name = name
        self.where = where
        self.max_limit = max_limit

    def handle(self, ctx: AppContext, params: FeedParams, requester_did=None) -> Page:
        return recency_page(self.where, min(params.limit, self.max_limit), params.cursor)
