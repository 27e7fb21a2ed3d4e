"""Engine wiring and lifecycle.

Hey future me - this is the ONLY place that knows the concrete classes. Everything
else takes its collaborators injected, so tests can swap the iTunes client for a fake.

    async with artwork_engine_lifespan() as engine:
        entry = await engine.resolve_one("Daft Punk", "One More Time")

For long-running apps with their own startup/shutdown hooks, call
create_resolution_engine() at startup and `await engine.close()` +
`await HttpClientPool.close()` at shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from coverflow.application.cache.artwork_cache import ArtworkCache
from coverflow.application.services.artwork.engine import ResolutionEngine
from coverflow.application.services.artwork.fallback import FallbackSynthesizer
from coverflow.application.services.artwork.match_scorer import MatchScorer
from coverflow.application.services.artwork.scheduler import ScheduleConfig
from coverflow.config import Settings, get_settings
from coverflow.domain.exceptions import ConfigurationError, ValidationError
from coverflow.domain.ports import IArtworkLookupClient
from coverflow.infrastructure.image_preloader import ImagePreloader
from coverflow.infrastructure.integrations.http_pool import HttpClientPool
from coverflow.infrastructure.integrations.itunes_client import ItunesClient
from coverflow.infrastructure.observability import configure_logging
from coverflow.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def create_resolution_engine(
    settings: Settings | None = None,
    client: IArtworkLookupClient | None = None,
) -> ResolutionEngine:
    """Build a ResolutionEngine from settings.

    Args:
        settings: Settings to use (default: get_settings())
        client: Lookup client override (default: ItunesClient from settings)

    Returns:
        Ready-to-use engine (needs a running event loop for resolution calls)

    Raises:
        ConfigurationError: If the schedule settings are inconsistent
    """
    settings = settings or get_settings()
    artwork = settings.artwork

    try:
        schedule_config = ScheduleConfig.from_settings(settings.schedule)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid schedule settings: {e.message}") from e

    preloader = (
        ImagePreloader(timeout_seconds=artwork.preload_timeout_seconds)
        if artwork.preload_images
        else None
    )

    engine = ResolutionEngine(
        client or ItunesClient(settings.itunes),
        limiter=RateLimiter.from_settings(settings.rate_limit),
        cache=ArtworkCache(fallback_retry_seconds=artwork.fallback_retry_seconds),
        fallback=FallbackSynthesizer(
            size=artwork.fallback_size,
            artist_max_length=artwork.fallback_artist_max_length,
            track_max_length=artwork.fallback_track_max_length,
        ),
        scorer=MatchScorer(min_score=artwork.min_match_score),
        preloader=preloader,
        schedule_config=schedule_config,
    )
    logger.info(
        "Artwork engine created (max_concurrent=%d, preload_radius=%d, "
        "lazy_radius=%d, preload_images=%s)",
        settings.rate_limit.max_concurrent,
        schedule_config.preload_radius,
        schedule_config.lazy_radius,
        artwork.preload_images,
    )
    return engine


# Listen future me, everything before `yield` is startup, everything after is shutdown. The
# try/finally makes sure the engine and the shared HTTP pool are closed even when the body
# raises. Logging is configured here because this is the "I am the application" entry point;
# library users who set up logging themselves pass configure=False.
@asynccontextmanager
async def artwork_engine_lifespan(
    settings: Settings | None = None,
    client: IArtworkLookupClient | None = None,
    configure: bool = True,
) -> AsyncGenerator[ResolutionEngine, None]:
    """Run an engine for the duration of the context.

    Args:
        settings: Settings to use (default: get_settings())
        client: Lookup client override
        configure: Configure root logging from settings first
    """
    settings = settings or get_settings()

    if configure:
        configure_logging(
            log_level=settings.observability.level,
            json_format=settings.observability.json_format,
            app_name=settings.app_name,
        )
    logger.info("Starting artwork engine: %s", settings.app_name)

    engine = create_resolution_engine(settings, client)
    try:
        yield engine
    finally:
        logger.info("Shutting down artwork engine")
        await engine.close()
        await HttpClientPool.close()


__all__ = ["artwork_engine_lifespan", "create_resolution_engine"]
