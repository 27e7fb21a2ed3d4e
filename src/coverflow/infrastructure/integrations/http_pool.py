"""One keep-alive httpx client for artwork downloads.

Hey future me - the preloader hits the same few Apple CDN hosts over and over
(is1-ssl.mzstatic.com and friends), so it shares this client instead of paying a
TLS handshake per image. artwork_engine_lifespan closes it on shutdown.
"""

import asyncio
import logging
from typing import ClassVar

import httpx

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Process-wide lazily created AsyncClient."""

    _client: ClassVar[httpx.AsyncClient | None] = None
    _lock: ClassVar[asyncio.Lock | None] = None

    DEFAULT_TIMEOUT: ClassVar[float] = 30.0
    # CDN hosts take parallel connections fine, the search API is what's throttled
    MAX_CONNECTIONS: ClassVar[int] = 20
    MAX_KEEPALIVE: ClassVar[int] = 10

    @classmethod
    def _ensure_lock(cls) -> asyncio.Lock:
        if cls._lock is None:
            cls._lock = asyncio.Lock()
        return cls._lock

    @classmethod
    async def get_client(cls, timeout: float | None = None) -> httpx.AsyncClient:
        """Return the shared client, creating it on first use.

        timeout only counts for the call that creates the client.
        """
        async with cls._ensure_lock():
            if cls._client is None:
                effective_timeout = timeout or cls.DEFAULT_TIMEOUT
                cls._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(effective_timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=cls.MAX_KEEPALIVE,
                        max_connections=cls.MAX_CONNECTIONS,
                    ),
                    http2=True,
                    follow_redirects=True,
                )
                logger.info("Artwork download client created (timeout=%.1fs)", effective_timeout)
            return cls._client

    @classmethod
    async def close(cls) -> None:
        async with cls._ensure_lock():
            if cls._client is not None:
                await cls._client.aclose()
                cls._client = None
                logger.info("Artwork download client closed")
        # Locks bind to their event loop, the next loop makes its own
        cls._lock = None

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._client is not None
