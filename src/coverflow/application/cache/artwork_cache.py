"""In-memory artwork cache (process lifetime, no persistence)."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from typing import Any

from coverflow.domain.entities.artwork import ArtworkKey, CacheEntry, Provenance

logger = logging.getLogger(__name__)


class ArtworkCache:
    """Map from artwork key to its settled CacheEntry.

    Hey future me - this is SYNCHRONOUS, no asyncio.Lock and no await anywhere.
    Every method runs start to end in one go, so on one event loop nothing can
    interleave with it. That's what lets the coordinator answer a
    cache hit without suspending.

    Entries are write-once: put() never overwrites a live entry. The only ways an entry
    goes away are clear() and put() replacing a FALLBACK past its cooldown.
    """

    # Listen up, fallback_retry_seconds=None means a failed lookup stays FALLBACK until
    # clear(). With a value, a FALLBACK entry older than that counts as a miss for get(),
    # but stays in the map until the retry put()s its replacement. EXACT never expires.
    def __init__(self, fallback_retry_seconds: float | None = None) -> None:
        self.fallback_retry_seconds = fallback_retry_seconds
        self._entries: dict[ArtworkKey, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._expired = 0

    def get(self, key: ArtworkKey) -> CacheEntry | None:
        """Get entry for key.

        Returns:
            Entry if present (and not an expired FALLBACK), None otherwise
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_stale(entry):
            self._misses += 1
            logger.debug("FALLBACK entry for %s expired, will retry lookup", key)
            return None

        self._hits += 1
        return entry

    def peek(self, key: ArtworkKey, include_stale: bool = False) -> CacheEntry | None:
        """Like get() but without touching stats.

        include_stale=True also returns a FALLBACK past its retry cooldown.
        """
        entry = self._entries.get(key)
        if entry is None or (not include_stale and self._is_stale(entry)):
            return None
        return entry

    def put(self, entry: CacheEntry) -> CacheEntry:
        """Store an entry unless the key already has one.

        Returns:
            The entry that is cached for the key afterwards (the existing one wins)
        """
        existing = self._entries.get(entry.key)
        if existing is not None:
            if not self._is_stale(existing):
                logger.debug("Cache already holds %s, keeping existing entry", entry.key)
                return existing
            self._expired += 1

        self._entries[entry.key] = entry
        return entry

    def clear(self) -> int:
        """Drop all entries.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        logger.info("Artwork cache cleared (%d entries)", count)
        return count

    def keys(self) -> list[ArtworkKey]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.peek(ArtworkKey(key)) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ArtworkKey]:
        return iter(list(self._entries))

    def _is_stale(self, entry: CacheEntry) -> bool:
        if self.fallback_retry_seconds is None or not entry.is_fallback:
            return False
        age = datetime.now(UTC) - entry.resolved_at
        return age > timedelta(seconds=self.fallback_retry_seconds)

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics (split by provenance)."""
        exact = sum(
            1 for entry in self._entries.values() if entry.provenance is Provenance.EXACT
        )
        return {
            "total_entries": len(self._entries),
            "exact_entries": exact,
            "fallback_entries": len(self._entries) - exact,
            "hits": self._hits,
            "misses": self._misses,
            "expired_fallbacks": self._expired,
        }


__all__ = ["ArtworkCache"]
