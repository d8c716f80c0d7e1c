"""TTL cache for document excerpts."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import UUID


@dataclass
class CacheEntry:
    """Cached excerpt with the time it was stored."""

    value: str
    cached_at: float
    ttl_seconds: int

    def is_fresh(self, now: float) -> bool:
        """Check if cache entry is still valid."""
        return (now - self.cached_at) < self.ttl_seconds


class ExcerptCache:
    """In-memory excerpt cache keyed by document id.

    Documents are immutable once uploaded, so a cached excerpt is identical to
    what a fresh extraction would produce. A TTL of 0 disables caching.
    Expired entries are swept on every store, and past `max_entries` the
    oldest entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: int,
        max_entries: int = 1024,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock or time.monotonic
        self._entries: dict[UUID, CacheEntry] = {}

    @property
    def enabled(self) -> bool:
        return self._ttl > 0

    def get(self, document_id: UUID) -> str | None:
        """Get cached excerpt if fresh, None otherwise."""
        entry = self._entries.get(document_id)
        if entry and entry.is_fresh(self._clock()):
            return entry.value
        elif entry:
            # Expired - remove
            del self._entries[document_id]
        return None

    def set(self, document_id: UUID, excerpt: str) -> None:
        """Store an excerpt."""
        if not self.enabled:
            return
        now = self._clock()
        self._sweep(now)

        # Re-inserting moves the entry to the newest position
        self._entries.pop(document_id, None)
        self._entries[document_id] = CacheEntry(value=excerpt, cached_at=now, ttl_seconds=self._ttl)

        while len(self._entries) > self._max_entries:
            del self._entries[next(iter(self._entries))]

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [key for key, entry in self._entries.items() if not entry.is_fresh(now)]
        for key in expired:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
