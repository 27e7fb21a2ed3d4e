"""Request coordination: cache hits, in-flight dedup and the lookup task.

Hey future me – das ist das HERZ der Dedup-Garantie!

    submit("Taylor Swift", "Anti-Hero")
        │
        ├─► cache hit?      → callback sofort, keine Suspension, kein Netzwerk
        ├─► schon pending?  → callback an die bestehende PendingRequest hängen
        └─► sonst           → PendingRequest anlegen + Lookup-Task starten
                                 │
                                 ├─► limiter.slot(priority)    (wartet ggf.)
                                 ├─► client.search()
                                 ├─► best_match() / preload
                                 ├─► EXACT oder FALLBACK in den Cache
                                 └─► alle Subscriber in Reihenfolge benachrichtigen

INVARIANT: at most ONE lookup per key at any time. The check "cached? pending?" and the
insert into _pending happen without an await in between, so on one event loop no other
task can sneak in. Don't add an await in submit()/_claim() - it breaks dedup.

Errors never leave this module. Every lookup ends in a CacheEntry (EXACT or FALLBACK).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from coverflow.application.cache.artwork_cache import ArtworkCache
from coverflow.application.services.artwork.fallback import (
    STATIC_PLACEHOLDER,
    FallbackSynthesizer,
)
from coverflow.application.services.artwork.match_scorer import MatchScorer
from coverflow.domain.entities.artwork import (
    ArtworkKey,
    CacheEntry,
    Priority,
    Provenance,
)
from coverflow.domain.exceptions import ArtworkLookupError, ImagePreloadError
from coverflow.domain.ports import IArtworkLookupClient, IImagePreloader
from coverflow.domain.value_objects.artwork_key import canonicalize
from coverflow.infrastructure.observability.logging import set_correlation_id
from coverflow.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ResolveCallback = Callable[[CacheEntry], None]


@dataclass(eq=False)
class PendingRequest:
    """One in-flight resolution.

    Attributes:
        key: Canonical key being resolved
        artist: Artist as first requested (sent to the search service)
        track: Track as first requested
        priority: Tier used for the limiter queue
        future: Resolves with the settled CacheEntry
        subscribers: Completion callbacks, notified in subscription order
        started: Set once the lookup got its limiter slot (or settled without one)
        cancelled: Set by clear_all() - result is delivered but not cached
        task: The lookup task
    """

    key: ArtworkKey
    artist: str
    track: str
    priority: Priority
    future: asyncio.Future[CacheEntry]
    subscribers: list[ResolveCallback] = field(default_factory=list)
    started: asyncio.Event = field(default_factory=asyncio.Event)
    cancelled: bool = False
    task: asyncio.Task[None] | None = None

    def subscribe(self, callback: ResolveCallback) -> None:
        """Attach a callback (ordered set - the same callback is kept once)."""
        if callback not in self.subscribers:
            self.subscribers.append(callback)

    @property
    def done(self) -> bool:
        return self.future.done()


def _notify(callback: ResolveCallback, entry: CacheEntry) -> None:
    # One broken subscriber must not starve the others
    try:
        callback(entry)
    except Exception:
        logger.exception("Artwork subscriber failed for %s", entry.key)


class RequestCoordinator:
    """Deduplicates resolution requests and runs one lookup per key."""

    def __init__(
        self,
        client: IArtworkLookupClient,
        limiter: RateLimiter,
        cache: ArtworkCache,
        fallback: FallbackSynthesizer,
        scorer: MatchScorer | None = None,
        preloader: IImagePreloader | None = None,
    ) -> None:
        """
        Initialize coordinator.

        Args:
            client: Search service client
            limiter: Gate for every external call
            cache: Where settled entries go
            fallback: Placeholder renderer for failed/unmatched lookups
            scorer: Candidate ranking (default floor: 5)
            preloader: Optional image verification before caching EXACT
        """
        self.client = client
        self.limiter = limiter
        self.cache = cache
        self.fallback = fallback
        self.scorer = scorer or MatchScorer()
        self.preloader = preloader

        self._pending: dict[ArtworkKey, PendingRequest] = {}
        # All lookup tasks, including ones detached by clear_all()
        self._tasks: set[asyncio.Task[None]] = set()
        self._stats = {
            "cache_hits": 0,
            "joined": 0,
            "lookups_started": 0,
            "exact": 0,
            "fallback": 0,
            "lookup_errors": 0,
            "preload_errors": 0,
        }

    def get_cached(self, key: ArtworkKey) -> CacheEntry | None:
        """Synchronous cache lookup."""
        return self.cache.get(key)

    def is_pending(self, key: ArtworkKey) -> bool:
        """Check if a lookup for key is in flight."""
        return key in self._pending

    def submit(
        self,
        artist: str,
        track: str,
        priority: Priority = Priority.NORMAL,
        callback: ResolveCallback | None = None,
    ) -> PendingRequest | None:
        """Request artwork without waiting for it.

        A cache hit calls callback right away and returns None. Otherwise the
        callback is attached to the (new or existing) PendingRequest.

        Raises:
            ValidationError: If artist and track are both empty
        """
        key = canonicalize(artist, track)

        entry = self.cache.get(key)
        if entry is not None:
            self._stats["cache_hits"] += 1
            logger.debug("Cache hit for %s", key)
            if callback is not None:
                _notify(callback, entry)
            return None

        pending = self._claim(key, artist, track, priority)
        if callback is not None:
            pending.subscribe(callback)
        return pending

    async def resolve(
        self,
        artist: str,
        track: str,
        priority: Priority = Priority.NORMAL,
    ) -> CacheEntry:
        """Resolve artwork, waiting for the lookup if needed.

        A cache hit returns without suspending. Cancelling the caller does NOT
        cancel the shared lookup (other subscribers still need it).

        Raises:
            ValidationError: If artist and track are both empty
        """
        key = canonicalize(artist, track)

        entry = self.cache.get(key)
        if entry is not None:
            self._stats["cache_hits"] += 1
            logger.debug("Cache hit for %s", key)
            return entry

        pending = self._claim(key, artist, track, priority)
        return await asyncio.shield(pending.future)

    def _claim(
        self, key: ArtworkKey, artist: str, track: str, priority: Priority
    ) -> PendingRequest:
        """Join the in-flight request for key or start a new one. Never awaits."""
        pending = self._pending.get(key)
        if pending is not None:
            self._stats["joined"] += 1
            logger.debug("Joining in-flight lookup for %s", key)
            return pending

        loop = asyncio.get_running_loop()
        pending = PendingRequest(
            key=key,
            artist=artist,
            track=track,
            priority=priority,
            future=loop.create_future(),
        )
        self._pending[key] = pending
        self._stats["lookups_started"] += 1

        task = loop.create_task(self._run(pending), name=f"artwork-lookup:{key}")
        pending.task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return pending

    # Hey future me, _run is the ONLY place that settles a PendingRequest, and it MUST settle
    # it no matter what: the finally drops the table slot, and anything that blows up while
    # caching degrades to the static placeholder. A request left in _pending would swallow
    # every later resolve() for that key forever. Cancellation (close() with leftovers)
    # cancels the future so resolve() callers don't hang either.
    async def _run(self, pending: PendingRequest) -> None:
        set_correlation_id(pending.key)
        try:
            entry = await self._lookup(pending)
            # clear_all() ran while we were in flight - deliver, but keep the cache clean
            stored = entry if pending.cancelled else self.cache.put(entry)
        except asyncio.CancelledError:
            logger.debug("Lookup for %s cancelled", pending.key)
            pending.started.set()
            pending.future.cancel()
            raise
        except Exception:
            logger.exception("Settling artwork for %s failed, using static placeholder", pending.key)
            stored = self._static_fallback(pending.key)
        finally:
            self._forget(pending)

        self._stats["exact" if stored.provenance is Provenance.EXACT else "fallback"] += 1
        logger.debug(
            "Resolved %s as %s (%d subscribers)",
            pending.key,
            stored.provenance.value,
            len(pending.subscribers),
        )

        for callback in list(pending.subscribers):
            _notify(callback, stored)
        if not pending.future.done():
            pending.future.set_result(stored)

    async def _lookup(self, pending: PendingRequest) -> CacheEntry:
        key = pending.key
        try:
            async with self.limiter.slot(pending.priority):
                pending.started.set()
                logger.debug("Searching artwork for %s", key)
                candidates = await self.client.search(pending.artist, pending.track)

            match = self.scorer.best_match(candidates, pending.artist, pending.track)
            if match is None or not match.artwork_reference:
                return self._make_fallback(key)

            if self.preloader is not None:
                await self.preloader.preload(match.artwork_reference)

            return CacheEntry(
                key=key,
                image_reference=match.artwork_reference,
                provenance=Provenance.EXACT,
            )
        except ArtworkLookupError as e:
            self._stats["lookup_errors"] += 1
            if e.is_rate_limited:
                self.limiter.register_rate_limited(e.retry_after)
            logger.warning(
                "Artwork lookup failed for %s (%s): %s", key, e.kind.value, e.message
            )
            return self._make_fallback(key)
        except ImagePreloadError as e:
            self._stats["preload_errors"] += 1
            logger.warning(
                "Artwork preload failed for %s (%s): %s", key, e.kind.value, e.message
            )
            return self._make_fallback(key)
        except Exception:
            logger.exception("Unexpected error resolving artwork for %s", key)
            return self._make_fallback(key)
        finally:
            pending.started.set()

    def _make_fallback(self, key: ArtworkKey) -> CacheEntry:
        try:
            image_reference = self.fallback.synthesize(key)
        except Exception:
            logger.exception("Placeholder rendering failed for %s", key)
            return self._static_fallback(key)
        return CacheEntry(
            key=key, image_reference=image_reference, provenance=Provenance.FALLBACK
        )

    def _static_fallback(self, key: ArtworkKey) -> CacheEntry:
        return CacheEntry(
            key=key, image_reference=STATIC_PLACEHOLDER, provenance=Provenance.FALLBACK
        )

    def _forget(self, pending: PendingRequest) -> None:
        # Only drop the table slot if it still points at US (clear_all may have detached it)
        if self._pending.get(pending.key) is pending:
            del self._pending[pending.key]

    def detach_pending(self) -> int:
        """Detach all in-flight requests from the table.

        Their lookups keep running and their current subscribers still get the
        result, but nothing is cached and new requests start fresh lookups.

        Returns:
            Number of detached requests
        """
        count = len(self._pending)
        for pending in self._pending.values():
            pending.cancelled = True
        self._pending.clear()
        return count

    async def drain(self) -> None:
        """Wait until every lookup task (detached ones included) has settled.

        Cancelling the wait (e.g. a timeout around it) leaves the lookups running.
        """
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    async def cancel_all(self) -> int:
        """Cancel all lookup tasks and wait for them to unwind.

        Returns:
            Number of tasks cancelled
        """
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        return len(tasks)

    def get_stats(self) -> dict[str, Any]:
        """Get coordinator statistics."""
        return {
            **self._stats,
            "pending": len(self._pending),
            "running_tasks": len(self._tasks),
        }


__all__ = ["PendingRequest", "RequestCoordinator", "ResolveCallback"]
