"""Domain entities."""

from coverflow.domain.entities.artwork import (
    ArtworkKey,
    CacheEntry,
    Priority,
    Provenance,
    ScheduleItem,
    SearchCandidate,
    TrackItem,
)

__all__ = [
    "ArtworkKey",
    "CacheEntry",
    "Priority",
    "Provenance",
    "ScheduleItem",
    "SearchCandidate",
    "TrackItem",
]
