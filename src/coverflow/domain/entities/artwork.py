"""Artwork resolution entities.

Hey future me - these are the nouns of the artwork engine:

    TrackItem       what callers hand us (artist, track, id)
    ArtworkKey      canonical identity used for cache + dedup
    SearchCandidate one parsed search result, thrown away after scoring
    CacheEntry      the settled result, immutable once written
    ScheduleItem    one row of a focus plan, recomputed on every pass

Only CacheEntry lives longer than a single call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import NewType

# Canonical "artist::track" string - ONLY build it via value_objects.artwork_key.canonicalize!
ArtworkKey = NewType("ArtworkKey", str)


class Provenance(Enum):
    """Where a cached image came from."""

    EXACT = "exact"  # Real artwork from the search service
    FALLBACK = "fallback"  # Synthesized placeholder


class Priority(IntEnum):
    """Priority tiers for resolution work.

    Hey future me - lower number = higher priority (served first)!
    That way (priority, sequence) tuples sort naturally in the limiter heap.

    - HIGH: focused item and its immediate neighbours
    - NORMAL: items that will probably scroll into view soon
    - LOW: background fill for the rest of the list
    """

    HIGH = 0
    NORMAL = 1
    LOW = 2


@dataclass(frozen=True)
class TrackItem:
    """One entry of a caller's list (e.g. a song in the carousel)."""

    artist: str
    track: str
    id: str = ""


@dataclass(frozen=True)
class SearchCandidate:
    """A single result returned by the search service.

    artwork_reference is already upgraded to the large size (600x600) when the
    service used the thumbnail naming pattern.
    """

    candidate_artist: str
    candidate_track: str
    artwork_reference: str | None = None

    @property
    def has_artwork(self) -> bool:
        """Check if the candidate carries any artwork URL."""
        return bool(self.artwork_reference)


@dataclass(frozen=True)
class CacheEntry:
    """Settled artwork for one key.

    Immutable (frozen) - a key is never re-resolved implicitly, only after an
    explicit cache clear. image_reference is opaque: a CDN URL for EXACT, a
    data: URI for FALLBACK.
    """

    key: ArtworkKey
    image_reference: str
    provenance: Provenance
    resolved_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_fallback(self) -> bool:
        return self.provenance is Provenance.FALLBACK


@dataclass(frozen=True)
class ScheduleItem:
    """One planned submission, ordered by distance from the focus."""

    key: ArtworkKey
    index: int
    distance_from_focus: int
    tier: Priority
    item: TrackItem


__all__ = [
    "ArtworkKey",
    "CacheEntry",
    "Priority",
    "Provenance",
    "ScheduleItem",
    "SearchCandidate",
    "TrackItem",
]
