import os

from dotenv import load_dotenv

# Environment setup
load_dotenv()


def _split(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


# Service identity
HOSTNAME = os.getenv("FEEDGEN_HOSTNAME", "example.com")
SERVICE_DID = os.getenv("FEEDGEN_SERVICE_DID", f"did:web:{HOSTNAME}")
PUBLISHER_DID = os.getenv("FEEDGEN_PUBLISHER_DID", "did:example:alice")
LISTENHOST = os.getenv("FEEDGEN_LISTENHOST", "0.0.0.0")
PORT = int(os.getenv("FEEDGEN_PORT", 3000))

# Storage
SQLITE_LOCATION = os.getenv("FEEDGEN_SQLITE_LOCATION", "feed.db")

# Event stream
JETSTREAM_URL = os.getenv("FEEDGEN_JETSTREAM_URL", "wss://jetstream2.us-east.bsky.network/subscribe")
SUBSCRIPTION_SERVICE = os.getenv("FEEDGEN_SUBSCRIPTION_SERVICE", JETSTREAM_URL)
RECONNECT_DELAY = float(os.getenv("FEEDGEN_RECONNECT_DELAY", 5))
MAX_RECONNECT_DELAY = float(os.getenv("FEEDGEN_MAX_RECONNECT_DELAY", 300))
BATCH_SIZE = int(os.getenv("FEEDGEN_BATCH_SIZE", 200))
FLUSH_INTERVAL = float(os.getenv("FEEDGEN_FLUSH_INTERVAL", 1.0))

# "all" keeps every post, "top-level-text" keeps only non-reply posts with text
POST_FILTER = os.getenv("FEEDGEN_POST_FILTER", "all")

# Retention (seconds)
POST_TTL = int(os.getenv("FEEDGEN_POST_TTL", 60 * 60))
EDGE_TTL = int(os.getenv("FEEDGEN_EDGE_TTL", 60 * 60))
PRUNE_INTERVAL = int(os.getenv("FEEDGEN_PRUNE_INTERVAL", 60))

# Feed serving
DEFAULT_LIMIT = int(os.getenv("FEEDGEN_DEFAULT_LIMIT", 50))
MAX_LIMIT = int(os.getenv("FEEDGEN_MAX_LIMIT", 100))
HANDLER_TIMEOUT = float(os.getenv("FEEDGEN_HANDLER_TIMEOUT", 10))

# Decayed-score ranking
HOT_GRAVITY = float(os.getenv("FEEDGEN_HOT_GRAVITY", 1.8))
HOT_CANDIDATES = int(os.getenv("FEEDGEN_HOT_CANDIDATES", 1000))
BANNED_TERMS = _split(os.getenv("FEEDGEN_BANNED_TERMS", ""))

# Snapshot feeds
SNAPSHOT_SIZE = int(os.getenv("FEEDGEN_SNAPSHOT_SIZE", 10_000))
SNAPSHOT_PAGE_LIMIT = int(os.getenv("FEEDGEN_SNAPSHOT_PAGE_LIMIT", 30))
REFRESH_INTERVAL = int(os.getenv("FEEDGEN_REFRESH_INTERVAL", 10 * 60))

# Per-viewer feed
VIEWER_TTL = int(os.getenv("FEEDGEN_VIEWER_TTL", 60 * 60))
VIEWER_SWEEP_INTERVAL = int(os.getenv("FEEDGEN_VIEWER_SWEEP_INTERVAL", 60 * 60))
# Served by the pinned feed and to first-time viewers
DEFAULT_PINNED_POST = "at://imlunahey.com/app.bsky.feed.post/3lc364tfdhk2l"
PINNED_POSTS = _split(os.getenv("FEEDGEN_PINNED_POSTS", DEFAULT_PINNED_POST))
