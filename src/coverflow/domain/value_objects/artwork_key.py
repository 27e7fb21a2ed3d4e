"""Canonical artwork keys for caching and deduplication.

Hey future me - EVERY component that looks something up by (artist, track) must go
through canonicalize()! The cache, the in-flight table and the scheduler all compare
keys as plain strings. If one of them builds its own key ("Artist-Title" with the
original casing, say) the same song gets fetched twice and the dedup guarantee is gone.

Normalization is the same as the search-term cleaning:
- lowercase
- punctuation removed ("Anti-Hero" -> "antihero", "AC/DC" -> "acdc")
- whitespace collapsed and trimmed

Examples:
    >>> canonicalize("Taylor Swift", "Anti-Hero")
    'taylor swift::antihero'
    >>> canonicalize("  TAYLOR   swift ", "anti hero!") == canonicalize("Taylor Swift", "Anti Hero")
    True
"""

import re

from coverflow.domain.entities.artwork import ArtworkKey
from coverflow.domain.exceptions import ValidationError

# "::" can never appear inside a cleaned term (":" is punctuation), so splitting is lossless.
KEY_SEPARATOR = "::"

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


def clean_term(value: str) -> str:
    """Normalize one artist or track string.

    Args:
        value: Raw artist or track text

    Returns:
        Lowercase text without punctuation and with single spaces

    Examples:
        >>> clean_term("  Guns N' Roses ")
        'guns n roses'
        >>> clean_term("Beyoncé")
        'beyoncé'
    """
    if not value:
        return ""

    cleaned = _PUNCTUATION_RE.sub("", value.lower())
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def canonicalize(artist: str, track: str) -> ArtworkKey:
    """Derive the canonical key for an (artist, track) pair.

    Args:
        artist: Artist name as shown to the user
        track: Track title as shown to the user

    Returns:
        "artist::track" with both sides cleaned

    Raises:
        ValidationError: If artist AND track are both empty after cleaning
    """
    clean_artist = clean_term(artist)
    clean_track = clean_term(track)

    if not clean_artist and not clean_track:
        raise ValidationError(
            f"Cannot build artwork key from empty artist/track ({artist!r}, {track!r})"
        )

    return ArtworkKey(f"{clean_artist}{KEY_SEPARATOR}{clean_track}")


def split_key(key: ArtworkKey) -> tuple[str, str]:
    """Split a canonical key back into its cleaned (artist, track).

    Examples:
        >>> split_key(canonicalize("Taylor Swift", "Anti-Hero"))
        ('taylor swift', 'antihero')
    """
    artist, _, track = key.partition(KEY_SEPARATOR)
    return artist, track
