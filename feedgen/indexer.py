import json
import logging

from atproto import models
from peewee import InterfaceError, OperationalError

from feedgen import config
from feedgen.events import BLOCK, CREATE, DELETE, FOLLOW, LIKE, POST, REPOST, CommitEvent
from feedgen.models import Block, Follow, Post, db, get_cursor, save_cursor, utcnow

logger = logging.getLogger(__name__)

TAG_FEATURE = "app.bsky.richtext.facet#tag"
LINK_FEATURE = "app.bsky.richtext.facet#link"

ALL_POSTS = "all"
TOP_LEVEL_TEXT = "top-level-text"
POST_FILTERS = (ALL_POSTS, TOP_LEVEL_TEXT)

# The store itself is unavailable: let the stream loop reconnect
STORE_ERRORS = (OperationalError, InterfaceError)


def extract_facets(record: dict) -> tuple[list[str], list[str]]:
    """Return (tags, links) from rich-text facets plus the record's own tags."""
    tags = []
    links = []
    for facet in record.get("facets") or []:
        for feature in facet.get("features") or []:
            kind = feature.get("$type")
            if kind == TAG_FEATURE and feature.get("tag"):
                tags.append(feature["tag"])
            elif kind == LINK_FEATURE and feature.get("uri"):
                links.append(feature["uri"])
    tags.extend(tag for tag in record.get("tags") or [] if tag)
    return list(dict.fromkeys(tags)), list(dict.fromkeys(links))


def extract_images(embed: dict) -> tuple[bool, str]:
    """Return (has_image, alt_text) where alt_text is a JSON list or ''."""
    if embed.get("$type") != models.ids.AppBskyEmbedImages:
        return False, ""
    alts = [
        image["alt"]
        for image in embed.get("images") or []
        if (image.get("alt") or "").strip()
    ]
    return True, json.dumps(alts) if alts else ""


def extract_labels(record: dict) -> list[str]:
    labels = record.get("labels") or {}
    return [label["val"] for label in labels.get("values") or [] if label.get("val")]


def build_post(event: CommitEvent, indexed_at) -> dict:
    """Normalize a post record into Post column values."""
    record = event.payload
    embed = record.get("embed") or {}
    reply = record.get("reply") or {}
    tags, links = extract_facets(record)
    has_image, alt_text = extract_images(embed)

    embed_url = ""
    if embed.get("$type") == models.ids.AppBskyEmbedExternal:
        embed_url = (embed.get("external") or {}).get("uri") or ""

    return {
        "uri": event.uri,
        "author": event.actor,
        "cid": event.cid,
        "indexed_at": indexed_at,
        "text": record.get("text") or "",
        "langs": ",".join(record.get("langs") or []),
        "likes": 0,
        "replies": 0,
        "labels": ",".join(extract_labels(record)),
        "has_image": has_image,
        "alt_text": alt_text,
        "embed_url": embed_url,
        "tags": ",".join(tags),
        "links": ",".join(links),
        "root_post_uri": (reply.get("root") or {}).get("uri") or "",
    }


def should_index(record: dict, post_filter: str) -> bool:
    if post_filter == TOP_LEVEL_TEXT:
        return not record.get("reply") and bool((record.get("text") or "").strip())
    return True


class Indexer:
    """Applies commit events to the store.

    Every write tolerates redelivery: inserts ignore conflicts, deletes are
    naturally idempotent, and counter bumps are single relative updates.
    Events older than the persisted subscription cursor are skipped by
    apply_batch, which is what keeps replayed likes from counting twice.
    """

    def __init__(self, post_filter: str = config.POST_FILTER, clock=utcnow):
        if post_filter not in POST_FILTERS:
            raise ValueError(f"Unknown post filter {post_filter!r}, expected one of {POST_FILTERS}")
        self.post_filter = post_filter
        self.clock = clock
        self.handlers = {
            (POST, CREATE): self.create_post,
            (POST, DELETE): self.delete_post,
            (LIKE, CREATE): self.like_post,
            (REPOST, CREATE): self.repost_post,
            (BLOCK, CREATE): self.create_block,
            (BLOCK, DELETE): self.delete_block,
            (FOLLOW, CREATE): self.create_follow,
            (FOLLOW, DELETE): self.delete_follow,
        }

    def apply_event(self, event: CommitEvent):
        handler = self.handlers.get((event.collection, event.operation))
        if handler is None:
            logger.debug(f"Ignoring {event.describe()}")
            return
        handler(event)

    def apply_events(self, events) -> int:
        """Apply events in order, isolating failures to the event that caused them."""
        applied = 0
        for event in events:
            try:
                with db.atomic():
                    self.apply_event(event)
                applied += 1
            except STORE_ERRORS:
                raise
            except Exception as e:
                logger.error(f"Error applying {event.describe()}: {e}", exc_info=True)
        return applied

    def apply_batch(self, events, service: str = config.SUBSCRIPTION_SERVICE) -> int:
        """Apply a batch and advance the subscription cursor in one transaction."""
        events = list(events)
        with db.atomic():
            last = get_cursor(service)
            fresh = [
                event for event in events
                if event.seq is None or last is None or event.seq > last
            ]
            applied = self.apply_events(fresh)
            seqs = [event.seq for event in fresh if event.seq is not None]
            if seqs:
                save_cursor(service, max(seqs))

        skipped = len(events) - len(fresh)
        if skipped:
            logger.info(f"Skipped {skipped} already applied events for {service}")
        return applied

    # Posts

    def create_post(self, event: CommitEvent):
        if not should_index(event.payload, self.post_filter):
            return
        Post.insert(**build_post(event, self.clock())).on_conflict_ignore().execute()

    def delete_post(self, event: CommitEvent):
        Post.delete().where(Post.uri == event.uri).execute()

    # Engagement counters

    def like_post(self, event: CommitEvent):
        self._bump(event, Post.likes)

    def repost_post(self, event: CommitEvent):
        self._bump(event, Post.replies)

    def _bump(self, event: CommitEvent, counter):
        subject = (event.payload.get("subject") or {}).get("uri")
        if not subject:
            raise ValueError(f"{event.collection} record has no subject uri")
        updated = (
            Post
            .update({counter: counter + 1})
            .where(Post.uri == subject)
            .execute()
        )
        if not updated:
            logger.debug(f"Dropped {event.collection} for unknown post {subject}")

    # Graph edges

    def create_block(self, event: CommitEvent):
        Block.insert(
            id=event.rkey,
            blocker=event.actor,
            blocked=self._subject_did(event),
            created_at=self.clock(),
        ).on_conflict_ignore().execute()

    def delete_block(self, event: CommitEvent):
        Block.delete().where((Block.blocker == event.actor) & (Block.id == event.rkey)).execute()

    def create_follow(self, event: CommitEvent):
        Follow.insert(
            id=event.rkey,
            follower=event.actor,
            followed=self._subject_did(event),
            created_at=self.clock(),
        ).on_conflict_ignore().execute()

    def delete_follow(self, event: CommitEvent):
        Follow.delete().where((Follow.follower == event.actor) & (Follow.id == event.rkey)).execute()

    @staticmethod
    def _subject_did(event: CommitEvent) -> str:
        subject = event.payload.get("subject")
        if not isinstance(subject, str) or not subject:
            raise ValueError(f"{event.collection} record has no subject did")
        return subject
