"""
Rate Limiter for artwork search calls.

Hey future me – das ist der Rate Limiter für ALLE Artwork-Suchen!
iTunes hat ein hartes Limit (~20 requests / minute / IP) und antwortet danach mit 403/429.

WAS ER GARANTIERT:
- Mindestabstand zwischen dem START zweier Calls (nicht zwischen Completions -
  Antworten kommen in beliebiger Reihenfolge zurück!)
- Höchstens max_concurrent Calls gleichzeitig in flight
- Nach jedem Batch (batch_size Starts) eine längere Pause
- Reihenfolge: HIGH vor NORMAL vor LOW, innerhalb einer Stufe strikt FIFO
- Er verwirft NIE eine Anfrage und wirft NIE einen Fehler - er verzögert nur

ADAPTIVE BACKOFF bei 429:
- register_rate_limited(retry_after) schiebt den nächsten erlaubten Start nach hinten
- ohne Retry-After: 1s, 2s, 4s, ... (gedeckelt bei max_backoff_seconds)
- Nach Erfolg (slot() ohne Exception verlassen): Backoff reset

USAGE:
    limiter = RateLimiter(RateLimiterConfig(min_interval_seconds=0.2, max_concurrent=3))

    async with limiter.slot(Priority.HIGH):
        candidates = await client.search(artist, track)

No locks needed - everything runs on one event loop and the only suspension point is
waiting for our own grant future.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from coverflow.domain.entities.artwork import Priority

if TYPE_CHECKING:
    from coverflow.config.settings import RateLimitSettings

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me – Defaults: 3 parallel, 200ms zwischen Starts,
    1s Pause nach jedem Batch von 3. Damit bleiben wir unter dem iTunes-Limit.
    """

    min_interval_seconds: float = 0.2  # Gap between two starts
    max_concurrent: int = 3  # Calls in flight at the same time
    batch_size: int | None = None  # Starts per batch (None = max_concurrent)
    batch_pause_seconds: float = 1.0  # Gap after the last start of a batch
    initial_backoff_seconds: float = 1.0  # First 429 wait
    backoff_multiplier: float = 2.0  # Exponential backoff factor
    max_backoff_seconds: float = 60.0  # Cap for any 429 wait

    @property
    def effective_batch_size(self) -> int:
        return self.batch_size or self.max_concurrent


@dataclass(order=True)
class _Waiter:
    """Heap entry - sorts by priority, then by arrival (FIFO within a tier)."""

    priority: int
    sequence: int
    future: asyncio.Future[None] = field(compare=False)


@dataclass
class RateLimiter:
    """Start-spacing limiter with batch pauses and priority-ordered FIFO queue.

    Attributes:
        config: Rate limiter configuration
        name: Limiter name for logging
        _waiters: Heap of callers waiting for a slot
        _in_flight: Slots granted and not yet released
        _started: Total grants (drives batch pauses)
        _next_start: Loop time before which no new call may start
        _timer: Pending wake-up for the next grant
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "itunes"

    # Internal state (not in __init__ signature)
    _waiters: list[_Waiter] = field(default_factory=list, init=False)
    _sequence: itertools.count[int] = field(default_factory=itertools.count, init=False)
    _in_flight: int = field(default=0, init=False)
    _started: int = field(default=0, init=False)
    _next_start: float = field(default=0.0, init=False)
    _timer: asyncio.TimerHandle | None = field(default=None, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _stats: dict[str, int] = field(default_factory=dict, init=False)

    def __post_init__(self) -> None:
        """Initialize backoff and counters."""
        self._current_backoff = self.config.initial_backoff_seconds
        self._stats = {"granted": 0, "released": 0, "rate_limited": 0, "cancelled": 0}

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> RateLimiter:
        """Create limiter from RATE_LIMIT_* settings."""
        return cls(
            config=RateLimiterConfig(
                min_interval_seconds=settings.min_interval_seconds,
                max_concurrent=settings.max_concurrent,
                batch_pause_seconds=settings.batch_pause_seconds,
                initial_backoff_seconds=settings.initial_backoff_seconds,
                backoff_multiplier=settings.backoff_multiplier,
                max_backoff_seconds=settings.max_backoff_seconds,
            )
        )

    async def acquire(self, priority: int = Priority.NORMAL) -> None:
        """Wait until the next call may start, then take a slot.

        Hey future me – das ist die Haupt-Methode! Every successful acquire() MUST be
        paired with release(), use slot() unless you have a reason not to.

        Args:
            priority: Priority tier, lower value is served first
        """
        loop = asyncio.get_running_loop()
        waiter = _Waiter(int(priority), next(self._sequence), loop.create_future())
        heapq.heappush(self._waiters, waiter)
        self._pump()

        try:
            await waiter.future
        except asyncio.CancelledError:
            self._stats["cancelled"] += 1
            if waiter.future.done() and not waiter.future.cancelled():
                # Granted right before the caller went away - hand the slot back
                self.release()
            raise

    def release(self) -> None:
        """Return a slot taken by acquire()."""
        if self._in_flight > 0:
            self._in_flight -= 1
            self._stats["released"] += 1
        self._pump()

    @asynccontextmanager
    async def slot(self, priority: int = Priority.NORMAL) -> AsyncIterator[None]:
        """Context manager for one rate-limited call.

        Usage:
            async with limiter.slot(Priority.LOW):
                response = await client.get(url)
        """
        await self.acquire(priority)
        try:
            yield
        finally:
            self.release()
        # Only reached when the body did not raise
        self.reset_backoff()

    def register_rate_limited(self, retry_after: float | None = None) -> float:
        """Push the next start out after a 429 response.

        Hey future me – WICHTIG: this does not sleep and does not retry anything! It only
        moves _next_start so every queued caller waits longer. The failed request itself
        already fell back.

        Args:
            retry_after: Retry-After header from the response (seconds)

        Returns:
            The wait that was applied
        """
        loop = asyncio.get_running_loop()

        wait_time = float(retry_after) if retry_after is not None else self._current_backoff
        wait_time = min(wait_time, self.config.max_backoff_seconds)

        logger.warning(
            "RateLimiter[%s]: rate limited, delaying next call by %.1fs "
            "(backoff level: %.1fs)",
            self.name,
            wait_time,
            self._current_backoff,
        )

        self._current_backoff = min(
            self._current_backoff * self.config.backoff_multiplier,
            self.config.max_backoff_seconds,
        )
        self._next_start = max(self._next_start, loop.time() + wait_time)
        self._stats["rate_limited"] += 1

        # Re-arm the wake-up for the new start time
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pump()
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful call."""
        self._current_backoff = self.config.initial_backoff_seconds

    def _pump(self) -> None:
        """Grant as many waiters as spacing and concurrency allow right now."""
        if self._timer is not None:
            # A wake-up is already scheduled, it will call us again
            return

        loop = asyncio.get_running_loop()
        while True:
            self._drop_abandoned()
            if not self._waiters or self._in_flight >= self.config.max_concurrent:
                return

            now = loop.time()
            if now < self._next_start:
                self._timer = loop.call_later(self._next_start - now, self._on_timer)
                return

            self._grant(heapq.heappop(self._waiters), now)

    def _grant(self, waiter: _Waiter, now: float) -> None:
        self._in_flight += 1
        self._started += 1
        self._stats["granted"] += 1

        end_of_batch = self._started % self.config.effective_batch_size == 0
        gap = (
            self.config.batch_pause_seconds
            if end_of_batch
            else self.config.min_interval_seconds
        )
        self._next_start = now + gap

        logger.debug(
            "RateLimiter[%s]: slot granted (priority=%d, in_flight=%d, waiting=%d)",
            self.name,
            waiter.priority,
            self._in_flight,
            len(self._waiters),
        )
        waiter.future.set_result(None)

    def _drop_abandoned(self) -> None:
        # Cancelled waiters stay in the heap until they reach the top
        while self._waiters and self._waiters[0].future.done():
            heapq.heappop(self._waiters)

    def _on_timer(self) -> None:
        self._timer = None
        self._pump()

    @property
    def in_flight(self) -> int:
        """Slots currently held."""
        return self._in_flight

    @property
    def waiting(self) -> int:
        """Callers still waiting for a slot."""
        return sum(1 for waiter in self._waiters if not waiter.future.done())

    def get_stats(self) -> dict[str, Any]:
        """Get limiter statistics for monitoring."""
        return {
            **self._stats,
            "in_flight": self._in_flight,
            "waiting": self.waiting,
            "current_backoff": self._current_backoff,
        }


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
]
