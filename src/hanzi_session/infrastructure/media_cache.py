"""
Bounded in-memory media cache.

One instance is shared across sessions for the lifetime of the process and is
passed explicitly to whoever needs it.
"""

import logging
import math
from collections import OrderedDict
from collections.abc import Iterator

from hanzi_session.infrastructure.utils.text import normalize_search_text
from hanzi_session.domain.constants import MEDIA_CACHE_EVICT_FRACTION, MEDIA_CACHE_SIZE
from hanzi_session.domain.models import MediaEntry

logger = logging.getLogger(__name__)


def media_key(kind: str, search_text: str) -> str:
    return f"{kind}:{normalize_search_text(search_text)}"


class MediaCache:
    """
    Insertion-ordered cache of media handles.

    Once the cache holds ``max_entries`` items, the oldest ``evict_fraction`` of
    them are dropped before the next insert, so ``len(cache) <= max_entries``
    always holds.
    """

    def __init__(
        self,
        max_entries: int = MEDIA_CACHE_SIZE,
        evict_fraction: float = MEDIA_CACHE_EVICT_FRACTION,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.evict_fraction = evict_fraction
        self._entries: OrderedDict[str, MediaEntry] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, key: str) -> MediaEntry | None:
        return self._entries.get(key)

    def put(self, entry: MediaEntry) -> None:
        if entry.key in self._entries:
            del self._entries[entry.key]
        elif len(self._entries) >= self.max_entries:
            self._evict()
        self._entries[entry.key] = entry

    def _evict(self) -> None:
        count = max(1, math.floor(self.max_entries * self.evict_fraction))
        for _ in range(min(count, len(self._entries))):
            self._entries.popitem(last=False)
        logger.debug(f"Evicted {count} cached media entries")

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Media cache cleared")
