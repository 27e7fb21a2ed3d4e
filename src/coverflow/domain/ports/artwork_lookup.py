"""Artwork Lookup Interface - the single network-facing seam of the engine.

Hey future me - das ist das PORT (Interface) für die Artwork-Suche!

FLOW:
    RequestCoordinator
        │
        └─► IArtworkLookupClient.search(artist, track)
                │
                └─► ItunesClient (infrastructure/integrations/itunes_client.py)
                        └─► https://itunes.apple.com/search

The coordinator does NOT know which service answers - only this interface.
Tests plug in an in-memory fake here.
"""

from abc import ABC, abstractmethod

from coverflow.domain.entities.artwork import SearchCandidate


class IArtworkLookupClient(ABC):
    """Interface for artwork search services.

    Implementations MUST:
    - issue exactly one request per search() call (no retries)
    - raise ArtworkLookupError for transport failures, non-2xx status,
      unparseable bodies and timeouts
    - never return partial or garbage data as success
    """

    @abstractmethod
    async def search(self, artist: str, track: str) -> list[SearchCandidate]:
        """Search for candidates matching an (artist, track) pair.

        Args:
            artist: Artist name as requested by the caller
            track: Track title as requested by the caller

        Returns:
            Parsed candidates, possibly empty

        Raises:
            ArtworkLookupError: If the call failed for any reason
        """
        ...

    async def close(self) -> None:
        """Release network resources. Default: nothing to release."""
        return None


__all__ = ["IArtworkLookupClient"]
