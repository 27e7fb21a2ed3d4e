"""Preload found artwork before it goes into the cache.

Hey future me - an iTunes hit gives us a URL, not an image. Sometimes that URL 404s
or serves garbage (Apple CDN hiccups, region-locked assets). With
ARTWORK_PRELOAD_IMAGES=true we download it once and let Pillow verify it BEFORE the
entry is cached as EXACT. If that fails or takes longer than
ARTWORK_PRELOAD_TIMEOUT_SECONDS the song gets the placeholder instead of a broken tile.

Off by default - it doubles the network traffic per cover.
"""

from __future__ import annotations

import asyncio
import logging
from io import BytesIO

import httpx
from PIL import Image as PILImage

from coverflow.domain.exceptions import ImagePreloadError, PreloadErrorKind
from coverflow.domain.ports import IImagePreloader
from coverflow.infrastructure.integrations.http_pool import HttpClientPool

logger = logging.getLogger(__name__)


def _verify_image(data: bytes) -> tuple[int, int]:
    """Check that data decodes as an image (runs in a worker thread).

    Returns:
        (width, height)
    """
    with PILImage.open(BytesIO(data)) as img:
        img.verify()
        return img.size


class ImagePreloader(IImagePreloader):
    """Download + verify artwork URLs via the shared HttpClientPool."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize preloader.

        Args:
            timeout_seconds: Budget for download AND decode of one image
            client: Optional HTTP client (default: HttpClientPool's shared one)
        """
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await HttpClientPool.get_client(timeout=self.timeout_seconds)

    async def preload(self, url: str) -> None:
        """Fetch url and verify it is a decodable image.

        data: URIs are already in memory and pass without a request.

        Raises:
            ImagePreloadError: LOAD_FAILED (HTTP error, not an image) or TIMEOUT
        """
        if url.startswith("data:"):
            return

        try:
            async with asyncio.timeout(self.timeout_seconds):
                client = await self._get_client()
                response = await client.get(url)
                response.raise_for_status()
                size = await asyncio.to_thread(_verify_image, response.content)
        except TimeoutError as e:
            raise ImagePreloadError(
                f"Image preload timed out after {self.timeout_seconds:.1f}s",
                kind=PreloadErrorKind.TIMEOUT,
                url=url,
            ) from e
        except httpx.TimeoutException as e:
            raise ImagePreloadError(
                f"Image download timed out: {e}",
                kind=PreloadErrorKind.TIMEOUT,
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise ImagePreloadError(
                f"Image download failed: {e}",
                kind=PreloadErrorKind.LOAD_FAILED,
                url=url,
            ) from e
        # UnidentifiedImageError is an OSError, truncated files raise SyntaxError/ValueError
        except (OSError, SyntaxError, ValueError) as e:
            raise ImagePreloadError(
                f"Downloaded artwork is not a valid image: {e}",
                kind=PreloadErrorKind.LOAD_FAILED,
                url=url,
            ) from e

        logger.debug("Preloaded artwork %s (%dx%d)", url, size[0], size[1])


__all__ = ["ImagePreloader"]
