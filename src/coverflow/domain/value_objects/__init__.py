"""Domain value objects."""

from coverflow.domain.value_objects.artwork_key import (
    KEY_SEPARATOR,
    canonicalize,
    clean_term,
    split_key,
)

__all__ = ["KEY_SEPARATOR", "canonicalize", "clean_term", "split_key"]
