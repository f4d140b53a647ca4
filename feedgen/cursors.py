"""Opaque pagination cursors.

Four shapes are in use:

* timestamp -- integer milliseconds since the epoch (legacy recency cursor)
* keyset    -- (indexed_at, id) for recency feeds
* score     -- (score, scored_at, id) for decayed-score feeds
* id        -- a single item id for snapshot feeds

Composite shapes are url-safe base64 of ``"{a}::{b}"`` (``"{a}::{b}::{c}"`` for
score cursors). Every decoder returns
``None`` for input it cannot understand instead of raising, so a bad cursor
always means "start of feed".
"""
import base64
import binascii
import math
from datetime import datetime, timedelta
from typing import Optional

EPOCH = datetime(1970, 1, 1)
SEPARATOR = "::"

_DECODE_ERRORS = (ValueError, TypeError, OverflowError, binascii.Error, UnicodeDecodeError)


def _to_micros(dt: datetime) -> int:
    delta = dt - EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds


def _from_micros(value: int) -> datetime:
    if value < 0:
        raise ValueError("negative timestamp")
    return EPOCH + timedelta(microseconds=value)


def _pack(*parts: str) -> str:
    raw = SEPARATOR.join(parts).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def _unpack(cursor: str, count: int = 2) -> list[str]:
    padded = cursor + "=" * (-len(cursor) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    # the id is last and may itself contain the separator
    parts = raw.split(SEPARATOR, count - 1)
    if len(parts) != count or not all(parts):
        raise ValueError("not a composite cursor")
    return parts


def encode_timestamp(dt: datetime) -> str:
    return str(_to_micros(dt) // 1000)


def decode_timestamp(cursor: Optional[str]) -> Optional[datetime]:
    if not isinstance(cursor, str) or not cursor.isdigit():
        return None
    try:
        return _from_micros(int(cursor) * 1000)
    except _DECODE_ERRORS:
        return None


def encode_keyset(indexed_at: datetime, item_id: str) -> str:
    return _pack(str(_to_micros(indexed_at)), item_id)


def decode_keyset(cursor: Optional[str]) -> Optional[tuple[datetime, Optional[str]]]:
    """Returns ``(indexed_at, id)``; id is ``None`` for a legacy timestamp cursor."""
    if not cursor or not isinstance(cursor, str):
        return None
    legacy = decode_timestamp(cursor)
    if legacy is not None:
        return legacy, None
    try:
        micros, item_id = _unpack(cursor)
        if not micros.isdigit():
            return None
        return _from_micros(int(micros)), item_id
    except _DECODE_ERRORS:
        return None


def encode_score(score: float, scored_at: datetime, item_id: str) -> str:
    return _pack(repr(float(score)), str(_to_micros(scored_at)), item_id)


def decode_score(cursor: Optional[str]) -> Optional[tuple[float, datetime, str]]:
    """Returns ``(score, scored_at, id)``; scored_at is the time the page was ranked at."""
    if not cursor or not isinstance(cursor, str):
        return None
    try:
        raw_score, micros, item_id = _unpack(cursor, 3)
        score = float(raw_score)
        if not micros.isdigit():
            return None
        scored_at = _from_micros(int(micros))
    except _DECODE_ERRORS:
        return None
    if not math.isfinite(score):
        return None
    return score, scored_at, item_id


def encode_id(item_id: str) -> str:
    return base64.urlsafe_b64encode(item_id.encode("utf-8")).decode("ascii").rstrip("=")


def decode_id(cursor: Optional[str]) -> Optional[str]:
    if not cursor or not isinstance(cursor, str):
        return None
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        item_id = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except _DECODE_ERRORS:
        return None
    return item_id or None
