from datetime import timedelta

from feedgen.indexer import Indexer
from feedgen.models import Block, Follow, Post
from feedgen.prune import prune

from tests.fixtures import ALICE, BOB, NOW, add_post, block, follow


def test_removes_only_expired_rows(database, clock):
    old = add_post("old", NOW - timedelta(hours=2))
    edge = add_post("edge", NOW - timedelta(seconds=3600))
    fresh = add_post("fresh", NOW - timedelta(minutes=5))

    removed = prune(post_ttl=3600, edge_ttl=3600, now=NOW)

    assert removed["posts"] == 1
    assert Post.get_or_none(Post.uri == old) is None
    assert {p.uri for p in Post.select()} == {edge, fresh}


def test_expires_graph_edges(database, clock):
    indexer = Indexer(clock=clock)
    indexer.apply_event(block(BOB, actor=ALICE, rkey="old"))
    indexer.apply_event(follow(BOB, actor=ALICE, rkey="old"))
    clock.advance(hours=2)
    indexer.apply_event(block(BOB, actor=ALICE, rkey="new"))

    removed = prune(post_ttl=3600, edge_ttl=3600, now=clock())

    assert removed == {"posts": 0, "blocks": 1, "follows": 1}
    assert [b.id for b in Block.select()] == ["new"]
    assert Follow.select().count() == 0


def test_empty_store(database):
    assert prune(now=NOW) == {"posts": 0, "blocks": 0, "follows": 0}
