"""Shared fixtures for the artwork engine tests.

Hey future me - FakeLookupClient is the workhorse here. It answers from a dict keyed by
canonical key, records every call and can be held back with an asyncio.Event so tests
can observe the "in flight" state:

    client = FakeLookupClient(gate=asyncio.Event())
    task = asyncio.create_task(engine.resolve_one("A", "B"))
    await settle()            # lookup is now waiting on the gate
    client.gate.set()
"""

from __future__ import annotations

import asyncio

import pytest

from coverflow.application.cache.artwork_cache import ArtworkCache
from coverflow.application.services.artwork.engine import ResolutionEngine
from coverflow.application.services.artwork.fallback import FallbackSynthesizer
from coverflow.domain.entities.artwork import ArtworkKey, SearchCandidate, TrackItem
from coverflow.domain.ports import IArtworkLookupClient
from coverflow.domain.value_objects.artwork_key import canonicalize
from coverflow.infrastructure.rate_limiter import RateLimiter, RateLimiterConfig


class FakeLookupClient(IArtworkLookupClient):
    """In-memory search client."""

    def __init__(
        self,
        results: dict[ArtworkKey, list[SearchCandidate]] | None = None,
        errors: dict[ArtworkKey, Exception] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.results = results or {}
        self.errors = errors or {}
        self.gate = gate
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def add_result(self, artist: str, track: str, *candidates: SearchCandidate) -> None:
        self.results[canonicalize(artist, track)] = list(candidates)

    def add_error(self, artist: str, track: str, error: Exception) -> None:
        self.errors[canonicalize(artist, track)] = error

    async def search(self, artist: str, track: str) -> list[SearchCandidate]:
        self.calls.append((artist, track))
        if self.gate is not None:
            await self.gate.wait()

        key = canonicalize(artist, track)
        if key in self.errors:
            raise self.errors[key]
        return list(self.results.get(key, []))

    async def close(self) -> None:
        self.closed = True


async def settle(rounds: int = 20) -> None:
    """Let every ready task run until it blocks."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_items(count: int) -> list[TrackItem]:
    """Items "Artist i" / "Song i" with id "song-i"."""
    return [TrackItem(f"Artist {i}", f"Song {i}", id=f"song-{i}") for i in range(count)]


def artwork_for(artist: str, track: str) -> SearchCandidate:
    """A candidate that matches (artist, track) exactly and carries artwork."""
    slug = canonicalize(artist, track).replace(" ", "-").replace("::", "/")
    return SearchCandidate(
        candidate_artist=artist,
        candidate_track=track,
        artwork_reference=f"https://is1-ssl.mzstatic.com/image/{slug}/600x600bb.jpg",
    )


@pytest.fixture
def fake_client() -> FakeLookupClient:
    """Ungated fake client without results."""
    return FakeLookupClient()


@pytest.fixture
def gated_client() -> FakeLookupClient:
    """Fake client whose calls block until client.gate is set."""
    return FakeLookupClient(gate=asyncio.Event())


@pytest.fixture
def fast_limiter() -> RateLimiter:
    """Limiter without spacing so tests don't sleep."""
    return RateLimiter(
        RateLimiterConfig(
            min_interval_seconds=0.0,
            max_concurrent=3,
            batch_pause_seconds=0.0,
            initial_backoff_seconds=0.0,
        )
    )


@pytest.fixture
def small_fallback() -> FallbackSynthesizer:
    """64px placeholders - same logic, less Pillow work."""
    return FallbackSynthesizer(size=64)


def build_engine(
    client: IArtworkLookupClient,
    limiter: RateLimiter,
    fallback: FallbackSynthesizer,
    cache: ArtworkCache | None = None,
) -> ResolutionEngine:
    return ResolutionEngine(client, limiter=limiter, fallback=fallback, cache=cache)


@pytest.fixture
def engine(
    fake_client: FakeLookupClient,
    fast_limiter: RateLimiter,
    small_fallback: FallbackSynthesizer,
) -> ResolutionEngine:
    """Engine over the ungated fake client."""
    return build_engine(fake_client, fast_limiter, small_fallback)


@pytest.fixture
def gated_engine(
    gated_client: FakeLookupClient,
    fast_limiter: RateLimiter,
    small_fallback: FallbackSynthesizer,
) -> ResolutionEngine:
    """Engine over the gated fake client."""
    return build_engine(gated_client, fast_limiter, small_fallback)
