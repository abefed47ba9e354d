"""Centralized constants for hanzi-session.

All magic numbers and configuration defaults live here so every layer
imports from a single source of truth.
"""

# ---------- Collaborator endpoints ----------
SCHEDULING_URL = "http://localhost:3001"
AUDIO_URL = "http://localhost:3002"
PROGRESS_URL = "http://localhost:3003"
IMAGE_URL = "http://localhost:3004"

# ---------- HTTP ----------
HEALTH_TIMEOUT = 5.0
REQUEST_TIMEOUT = 10.0
IMAGE_TIMEOUT = 15.0
DEFAULT_AUDIO_LANGUAGE = "zh-CN"

# ---------- Session ----------
DEFAULT_LEVEL = "new-1"
DEFAULT_CARD_COUNT = 20
MIN_CARD_COUNT = 5
MAX_CARD_COUNT = 100
MAX_OPEN_SESSIONS = 100

# ---------- Prefetch ----------
DEFAULT_PREFETCH_WINDOW = 3
MAX_PREFETCH_WINDOW = 5
PRELOAD_INITIAL_COUNT = 5

# ---------- Media cache ----------
MEDIA_CACHE_SIZE = 50
MEDIA_CACHE_EVICT_FRACTION = 0.3

# ---------- Image search terms ----------
MIN_SEARCH_TERM_LEN = 3
GENERIC_TERMS = frozenset(
    ["a", "an", "the", "to", "be", "of", "in", "on", "at", "for", "with", "by"]
)
SEARCH_TERM_QUALIFIER = "chinese"
