"""ResolutionEngine - the public face of the artwork engine.

Hey future me - rendering code talks ONLY to this class:

    engine = create_resolution_engine()            # infrastructure/lifecycle.py

    entry = await engine.resolve_one("Taylor Swift", "Anti-Hero", Priority.HIGH)
    entry.image_reference   # CDN URL (EXACT) or data: URI (FALLBACK)

    # Carousel moved - fetch around the new center, in the background
    engine.resolve_for_focus(songs, focus_index=42, on_resolved=update_tile)
    engine.get_cached_item(songs[42])              # sync, never suspends
    engine.progress(songs)                         # 0.0 .. 100.0

ONE engine per process = one cache + one in-flight table. Create it once and pass it
around; don't build a second one "just for this page" or you lose dedup.

resolve_for_focus() returns the dispatcher task. Calling it again supersedes (cancels)
the previous dispatcher - but only the part that hasn't been submitted yet! Lookups that
already started run to completion and land in the cache.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

from coverflow.application.cache.artwork_cache import ArtworkCache
from coverflow.application.services.artwork.coordinator import RequestCoordinator
from coverflow.application.services.artwork.fallback import FallbackSynthesizer
from coverflow.application.services.artwork.match_scorer import MatchScorer
from coverflow.application.services.artwork.scheduler import (
    PriorityScheduler,
    ScheduleConfig,
)
from coverflow.domain.entities.artwork import (
    ArtworkKey,
    CacheEntry,
    Priority,
    ScheduleItem,
    TrackItem,
)
from coverflow.domain.exceptions import ConfigurationError
from coverflow.domain.ports import IArtworkLookupClient, IImagePreloader
from coverflow.domain.value_objects.artwork_key import canonicalize
from coverflow.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

ResolvedListener = Callable[[TrackItem, CacheEntry], None]


class ResolutionEngine:
    """Composes scheduler, coordinator, cache and limiter into one API."""

    def __init__(
        self,
        client: IArtworkLookupClient | None,
        *,
        limiter: RateLimiter | None = None,
        cache: ArtworkCache | None = None,
        fallback: FallbackSynthesizer | None = None,
        scorer: MatchScorer | None = None,
        preloader: IImagePreloader | None = None,
        schedule_config: ScheduleConfig | None = None,
    ) -> None:
        """
        Initialize engine.

        Args:
            client: Search service client (required)
            limiter: Rate limiter (default: 3 parallel, 200ms spacing)
            cache: Artwork cache (default: empty, FALLBACK never retried)
            fallback: Placeholder renderer (default: 600x600)
            scorer: Match scorer (default floor: 5)
            preloader: Optional image verification step
            schedule_config: Default radii for resolve_for_focus()

        Raises:
            ConfigurationError: If no client is given
        """
        if client is None:
            raise ConfigurationError("ResolutionEngine needs a lookup client")

        self.cache = cache or ArtworkCache()
        self.limiter = limiter or RateLimiter()
        self.scheduler = PriorityScheduler(schedule_config)
        self.coordinator = RequestCoordinator(
            client=client,
            limiter=self.limiter,
            cache=self.cache,
            fallback=fallback or FallbackSynthesizer(),
            scorer=scorer,
            preloader=preloader,
        )

        self._listeners: list[ResolvedListener] = []
        self._dispatcher: asyncio.Task[None] | None = None
        self._closed = False

    # =========================================================================
    # Resolution
    # =========================================================================

    async def resolve_one(
        self,
        artist: str,
        track: str,
        priority: Priority = Priority.NORMAL,
    ) -> CacheEntry:
        """Resolve artwork for one (artist, track).

        Never fails for network reasons - worst case the entry is a FALLBACK.

        Raises:
            ValidationError: If artist and track are both empty
            ConfigurationError: If the engine was closed
        """
        self._ensure_open()
        return await self.coordinator.resolve(artist, track, priority)

    def resolve_for_focus(
        self,
        items: Sequence[TrackItem],
        focus_index: int,
        preload_radius: int | None = None,
        lazy_radius: int | None = None,
        on_resolved: ResolvedListener | None = None,
    ) -> asyncio.Task[None]:
        """Schedule background resolution around a focus index.

        Must be called from a running event loop. Planning happens right here, so
        contract violations raise immediately; submission happens in the returned
        task. Results arrive via on_resolved, subscribe() listeners and get_cached().

        Args:
            items: The caller's full list
            focus_index: Position of the focused item
            preload_radius: Override for the HIGH radius
            lazy_radius: Override for the NORMAL radius
            on_resolved: Listener for this call only

        Returns:
            The dispatcher task (supersedes any previous one)

        Raises:
            ValidationError: Bad focus index, bad radii or an item without artist/track
            ConfigurationError: If the engine was closed
        """
        self._ensure_open()

        config = self._schedule_config(preload_radius, lazy_radius)
        schedule = self.scheduler.plan(items, focus_index, config)

        if self._dispatcher is not None and not self._dispatcher.done():
            logger.debug("Focus moved to %d, superseding previous dispatch", focus_index)
            self._dispatcher.cancel()

        self._dispatcher = asyncio.create_task(
            self._dispatch(schedule, on_resolved),
            name=f"artwork-dispatch:{focus_index}",
        )
        return self._dispatcher

    def _schedule_config(
        self, preload_radius: int | None, lazy_radius: int | None
    ) -> ScheduleConfig:
        default = self.scheduler.config
        if preload_radius is None and lazy_radius is None:
            return default
        if preload_radius is None:
            preload_radius = default.preload_radius
        if lazy_radius is None:
            lazy_radius = default.lazy_radius
        return ScheduleConfig(
            preload_radius=preload_radius,
            lazy_radius=lazy_radius,
            include_background=default.include_background,
        )

    # Listen up, this is where "nearest first" actually happens. For every item that needs a
    # NEW lookup we wait until it got its limiter slot before submitting the next one, so
    # lookups start in plan order and a superseded dispatcher hasn't queued far-away items.
    # Cache hits and joins never wait.
    async def _dispatch(
        self, schedule: list[ScheduleItem], on_resolved: ResolvedListener | None
    ) -> None:
        hits = joined = submitted = 0

        for scheduled in schedule:
            item = scheduled.item

            def deliver(entry: CacheEntry, item: TrackItem = item) -> None:
                self._deliver(item, entry, on_resolved)

            cached = self.coordinator.get_cached(scheduled.key)
            if cached is not None:
                hits += 1
                deliver(cached)
                continue

            already_pending = self.coordinator.is_pending(scheduled.key)
            pending = self.coordinator.submit(
                item.artist, item.track, scheduled.tier, deliver
            )
            if pending is None:
                hits += 1
                continue
            if already_pending:
                joined += 1
                continue

            submitted += 1
            await pending.started.wait()

        logger.debug(
            "Focus dispatch done: %d items, %d cached, %d joined, %d new lookups",
            len(schedule),
            hits,
            joined,
            submitted,
        )

    def _deliver(
        self, item: TrackItem, entry: CacheEntry, on_resolved: ResolvedListener | None
    ) -> None:
        listeners = list(self._listeners)
        if on_resolved is not None:
            listeners.append(on_resolved)
        for listener in listeners:
            try:
                listener(item, entry)
            except Exception:
                logger.exception("Artwork listener failed for %s", entry.key)

    # =========================================================================
    # Synchronous queries
    # =========================================================================

    def get_cached(self, key: ArtworkKey) -> CacheEntry | None:
        """Cached entry for a canonical key (never suspends)."""
        return self.coordinator.get_cached(key)

    def get_cached_item(self, item: TrackItem) -> CacheEntry | None:
        """Cached entry for a list item."""
        return self.get_cached(canonicalize(item.artist, item.track))

    def is_pending(self, key: ArtworkKey) -> bool:
        return self.coordinator.is_pending(key)

    def is_item_pending(self, item: TrackItem) -> bool:
        return self.is_pending(canonicalize(item.artist, item.track))

    def progress(self, items: Sequence[TrackItem]) -> float:
        """Percentage of items with a cache entry (EXACT and FALLBACK both count).

        A FALLBACK past its retry cooldown still counts until the retry replaces
        it, so progress never goes down on its own.

        Returns:
            0.0 .. 100.0 (0.0 for an empty list)
        """
        if not items:
            return 0.0
        resolved = sum(
            1
            for item in items
            if self.cache.peek(canonicalize(item.artist, item.track), include_stale=True)
            is not None
        )
        return resolved * 100.0 / len(items)

    # =========================================================================
    # Subscriptions & lifecycle
    # =========================================================================

    def subscribe(self, listener: ResolvedListener) -> Callable[[], None]:
        """Register a listener for every item settled by resolve_for_focus().

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_all(self) -> None:
        """Drop the cache and forget in-flight requests.

        Running lookups are NOT aborted - their current subscribers still get the
        result, it just isn't cached. The next request for any key starts fresh.
        """
        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()
        self._dispatcher = None

        detached = self.coordinator.detach_pending()
        cleared = self.cache.clear()
        logger.info(
            "Artwork engine cleared (%d cached entries, %d in-flight detached)",
            cleared,
            detached,
        )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for the current dispatcher and all lookups to finish.

        Raises:
            TimeoutError: If that takes longer than timeout
        """
        async with asyncio.timeout(timeout):
            if self._dispatcher is not None:
                # wait() instead of gather() - a timeout must not cancel the dispatcher
                await asyncio.wait([self._dispatcher])
            await self.coordinator.drain()

    async def close(self, timeout: float | None = 5.0) -> None:
        """Stop dispatching, let running lookups finish, release the client.

        Lookups still running after timeout are cancelled.
        """
        if self._closed:
            return
        self._closed = True

        if self._dispatcher is not None and not self._dispatcher.done():
            self._dispatcher.cancel()

        try:
            await self.drain(timeout)
        except TimeoutError:
            cancelled = await self.coordinator.cancel_all()
            logger.warning(
                "Artwork engine close timed out, cancelled %d lookups", cancelled
            )

        await self.coordinator.client.close()
        logger.info("Artwork engine closed")

    def _ensure_open(self) -> None:
        if self._closed:
            raise ConfigurationError("ResolutionEngine is closed")

    def get_stats(self) -> dict[str, Any]:
        """Get engine statistics (cache, coordinator, limiter)."""
        return {
            "cache": self.cache.get_stats(),
            "coordinator": self.coordinator.get_stats(),
            "limiter": self.limiter.get_stats(),
            "listeners": len(self._listeners),
            "dispatching": self._dispatcher is not None and not self._dispatcher.done(),
        }


__all__ = ["ResolutionEngine", "ResolvedListener"]
