"""Match scoring for artwork search results.

Hey future me - iTunes returns whatever it finds for "taylor swift antihero": covers,
karaoke versions, a podcast episode about the song... This module picks the ONE
candidate that is most likely the right song, or nothing.

Scoring (all comparisons on clean_term() normalized text):

    +20  artist equal
    +10  artist contains / is contained in requested artist (only if not equal)
    +15  track equal
    +8   track contains / is contained in requested track (only if not equal)
    +5   candidate has an artwork URL at all

Artist weighs more than track: a matching artist with a different
track title (live version, remaster) usually still has the right album cover,
a matching title by a different artist almost never does.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from coverflow.domain.entities.artwork import SearchCandidate
from coverflow.domain.value_objects.artwork_key import clean_term

logger = logging.getLogger(__name__)

ARTIST_EXACT_SCORE = 20
ARTIST_PARTIAL_SCORE = 10
TRACK_EXACT_SCORE = 15
TRACK_PARTIAL_SCORE = 8
ARTWORK_PRESENT_SCORE = 5

# Winner must score STRICTLY more than this - a candidate with only artwork is no match
DEFAULT_MIN_SCORE = ARTWORK_PRESENT_SCORE


def _field_score(candidate: str, requested: str, exact: int, partial: int) -> int:
    # Empty strings are contained in everything - never let them score
    if not candidate or not requested:
        return 0
    if candidate == requested:
        return exact
    if candidate in requested or requested in candidate:
        return partial
    return 0


def score_candidate(candidate: SearchCandidate, artist: str, track: str) -> int:
    """Score one candidate against the requested (artist, track).

    Args:
        candidate: Parsed search result
        artist: Requested artist (raw, normalized here)
        track: Requested track (raw, normalized here)

    Returns:
        Score between 0 and 40
    """
    score = _field_score(
        clean_term(candidate.candidate_artist),
        clean_term(artist),
        ARTIST_EXACT_SCORE,
        ARTIST_PARTIAL_SCORE,
    )
    score += _field_score(
        clean_term(candidate.candidate_track),
        clean_term(track),
        TRACK_EXACT_SCORE,
        TRACK_PARTIAL_SCORE,
    )
    if candidate.has_artwork:
        score += ARTWORK_PRESENT_SCORE
    return score


def best_match(
    candidates: Sequence[SearchCandidate],
    artist: str,
    track: str,
    min_score: int = DEFAULT_MIN_SCORE,
) -> SearchCandidate | None:
    """Pick the best scoring candidate.

    Ties go to the candidate that came first (the service's own relevance order).

    Args:
        candidates: Results of one search call
        artist: Requested artist
        track: Requested track
        min_score: Winner must score strictly above this

    Returns:
        Best candidate, or None if nothing clears min_score
    """
    best: SearchCandidate | None = None
    best_score = min_score

    for candidate in candidates:
        score = score_candidate(candidate, artist, track)
        if score > best_score:
            best = candidate
            best_score = score

    if best is None:
        logger.debug(
            "No candidate above score %d for %r / %r (%d candidates)",
            min_score,
            artist,
            track,
            len(candidates),
        )
    else:
        logger.debug(
            "Best match for %r / %r: %r / %r (score %d)",
            artist,
            track,
            best.candidate_artist,
            best.candidate_track,
            best_score,
        )
    return best


class MatchScorer:
    """Callable wrapper around best_match() with a configured floor."""

    def __init__(self, min_score: int = DEFAULT_MIN_SCORE) -> None:
        self.min_score = min_score

    def best_match(
        self, candidates: Sequence[SearchCandidate], artist: str, track: str
    ) -> SearchCandidate | None:
        return best_match(candidates, artist, track, self.min_score)


__all__ = [
    "DEFAULT_MIN_SCORE",
    "MatchScorer",
    "best_match",
    "score_candidate",
]
