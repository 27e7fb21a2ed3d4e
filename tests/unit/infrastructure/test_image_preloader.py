"""Tests for ImagePreloader."""

import asyncio
from io import BytesIO

import httpx
import pytest
from PIL import Image as PILImage
from pytest_httpx import HTTPXMock

from coverflow.domain.exceptions import ImagePreloadError, PreloadErrorKind
from coverflow.infrastructure.image_preloader import ImagePreloader, _verify_image
from coverflow.infrastructure.integrations.http_pool import HttpClientPool

ARTWORK_URL = "https://is1-ssl.mzstatic.com/image/thumb/Music/ab/600x600bb.jpg"


def _png_bytes(size: tuple[int, int] = (32, 32)) -> bytes:
    buffer = BytesIO()
    PILImage.new("RGB", size, (200, 40, 90)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
async def fresh_pool():
    """The shared client must not outlive the test's event loop."""
    await HttpClientPool.close()
    yield
    await HttpClientPool.close()


class TestVerifyImage:
    """Test the Pillow verification helper."""

    def test_valid_png(self) -> None:
        """Test that a real PNG reports its size."""
        assert _verify_image(_png_bytes((40, 20))) == (40, 20)

    def test_garbage_raises(self) -> None:
        """Test that random bytes are rejected."""
        with pytest.raises(OSError):
            _verify_image(b"definitely not an image")


class TestImagePreloader:
    """Test preload() through the shared HTTP pool."""

    async def test_valid_image(self, httpx_mock: HTTPXMock) -> None:
        """Test that a decodable image passes."""
        httpx_mock.add_response(url=ARTWORK_URL, content=_png_bytes())

        await ImagePreloader().preload(ARTWORK_URL)

        assert HttpClientPool.is_initialized()
        assert len(httpx_mock.get_requests()) == 1

    async def test_shared_client_uses_preload_timeout(self, httpx_mock: HTTPXMock) -> None:
        """Test that the preloader creates the shared client with its own timeout."""
        httpx_mock.add_response(url=ARTWORK_URL, content=_png_bytes())

        await ImagePreloader(timeout_seconds=4.0).preload(ARTWORK_URL)

        client = await HttpClientPool.get_client()
        assert client.timeout.read == 4.0

    async def test_not_an_image(self, httpx_mock: HTTPXMock) -> None:
        """Test that an HTML error page becomes LOAD_FAILED."""
        httpx_mock.add_response(url=ARTWORK_URL, content=b"<html>oops</html>")

        with pytest.raises(ImagePreloadError) as exc_info:
            await ImagePreloader().preload(ARTWORK_URL)

        assert exc_info.value.kind is PreloadErrorKind.LOAD_FAILED
        assert exc_info.value.url == ARTWORK_URL

    async def test_http_404(self, httpx_mock: HTTPXMock) -> None:
        """Test that a missing image becomes LOAD_FAILED."""
        httpx_mock.add_response(url=ARTWORK_URL, status_code=404)

        with pytest.raises(ImagePreloadError) as exc_info:
            await ImagePreloader().preload(ARTWORK_URL)

        assert exc_info.value.kind is PreloadErrorKind.LOAD_FAILED
        assert isinstance(exc_info.value.__cause__, httpx.HTTPStatusError)

    async def test_data_uri_skips_request(self, httpx_mock: HTTPXMock) -> None:
        """Test that inline images are not downloaded."""
        await ImagePreloader().preload("data:image/png;base64,iVBORw0KGgo=")

        assert httpx_mock.get_requests() == []
        assert not HttpClientPool.is_initialized()

    async def test_slow_download_times_out(self, httpx_mock: HTTPXMock) -> None:
        """Test that the overall budget maps to TIMEOUT."""

        async def slow_response(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1.0)
            return httpx.Response(200, content=_png_bytes())

        httpx_mock.add_callback(slow_response, url=ARTWORK_URL)

        with pytest.raises(ImagePreloadError) as exc_info:
            await ImagePreloader(timeout_seconds=0.05).preload(ARTWORK_URL)

        assert exc_info.value.kind is PreloadErrorKind.TIMEOUT

    async def test_transport_timeout(self, httpx_mock: HTTPXMock) -> None:
        """Test that an httpx timeout maps to TIMEOUT too."""
        httpx_mock.add_exception(httpx.ConnectTimeout("connect timed out"))

        with pytest.raises(ImagePreloadError) as exc_info:
            await ImagePreloader().preload(ARTWORK_URL)

        assert exc_info.value.kind is PreloadErrorKind.TIMEOUT

    async def test_injected_client_bypasses_pool(self) -> None:
        """Test that an explicit client is used instead of the pool."""
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, content=_png_bytes())
            )
        )

        await ImagePreloader(client=client).preload(ARTWORK_URL)

        assert not HttpClientPool.is_initialized()
        await client.aclose()
