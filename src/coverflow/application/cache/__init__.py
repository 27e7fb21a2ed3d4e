"""Caching layer - the process-lifetime artwork cache."""

from coverflow.application.cache.artwork_cache import ArtworkCache

__all__ = ["ArtworkCache"]
