"""Image Preloader Interface - optional "is this URL really an image?" step."""

from abc import ABC, abstractmethod


class IImagePreloader(ABC):
    """Interface for preloading found artwork before it is cached as EXACT.

    Implementations raise ImagePreloadError (LOAD_FAILED or TIMEOUT) when the
    image can't be fetched or decoded in time. The coordinator turns that into
    a FALLBACK entry.
    """

    @abstractmethod
    async def preload(self, url: str) -> None:
        """Fetch and verify the image behind url.

        Raises:
            ImagePreloadError: If the image is unusable
        """
        ...
