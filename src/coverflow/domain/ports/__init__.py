"""Domain ports (interfaces implemented by infrastructure)."""

from coverflow.domain.ports.artwork_lookup import IArtworkLookupClient
from coverflow.domain.ports.image_preloader import IImagePreloader

__all__ = ["IArtworkLookupClient", "IImagePreloader"]
