"""Tests for engine wiring and the lifespan context manager."""

import logging

import pytest

from conftest import FakeLookupClient, artwork_for
from coverflow.application.services.artwork.engine import ResolutionEngine
from coverflow.config import (
    ArtworkSettings,
    RateLimitSettings,
    ScheduleSettings,
    Settings,
)
from coverflow.domain.entities.artwork import Priority, Provenance
from coverflow.domain.exceptions import ConfigurationError
from coverflow.infrastructure.image_preloader import ImagePreloader
from coverflow.infrastructure.integrations.http_pool import HttpClientPool
from coverflow.infrastructure.integrations.itunes_client import ItunesClient
from coverflow.infrastructure.lifecycle import (
    artwork_engine_lifespan,
    create_resolution_engine,
)


@pytest.fixture
def settings() -> Settings:
    """Settings with fast limits and a small placeholder."""
    return Settings(
        rate_limit=RateLimitSettings(
            min_interval_seconds=0,
            max_concurrent=2,
            batch_pause_seconds=0,
            initial_backoff_seconds=0,
        ),
        schedule=ScheduleSettings(preload_radius=1, lazy_radius=2),
        artwork=ArtworkSettings(
            fallback_size=64, min_match_score=7, fallback_retry_seconds=30
        ),
    )


class TestCreateResolutionEngine:
    """Test create_resolution_engine() wiring."""

    def test_wires_settings_through(self, settings: Settings) -> None:
        """Test that every group reaches its component."""
        engine = create_resolution_engine(settings, FakeLookupClient())

        assert isinstance(engine, ResolutionEngine)
        assert engine.scheduler.config.preload_radius == 1
        assert engine.scheduler.config.lazy_radius == 2
        assert engine.coordinator.scorer.min_score == 7
        assert engine.coordinator.fallback.size == 64
        assert engine.cache.fallback_retry_seconds == 30
        assert engine.limiter.config.max_concurrent == 2
        assert engine.coordinator.preloader is None

    def test_default_client_is_itunes(self, settings: Settings) -> None:
        """Test that without an override the iTunes client is used."""
        engine = create_resolution_engine(settings)
        assert isinstance(engine.coordinator.client, ItunesClient)
        assert engine.coordinator.client.settings is settings.itunes

    def test_preloader_when_enabled(self, settings: Settings) -> None:
        """Test ARTWORK_PRELOAD_IMAGES=true adds the preloader."""
        settings.artwork = ArtworkSettings(
            preload_images=True, preload_timeout_seconds=2.5
        )
        engine = create_resolution_engine(settings, FakeLookupClient())

        assert isinstance(engine.coordinator.preloader, ImagePreloader)
        assert engine.coordinator.preloader.timeout_seconds == 2.5

    def test_inconsistent_schedule_is_configuration_error(
        self, settings: Settings
    ) -> None:
        """Test that radii which skipped validation are still rejected."""
        settings.schedule = ScheduleSettings.model_construct(
            preload_radius=5, lazy_radius=1, include_background=True
        )

        with pytest.raises(ConfigurationError, match="schedule"):
            create_resolution_engine(settings, FakeLookupClient())


class TestArtworkEngineLifespan:
    """Test artwork_engine_lifespan()."""

    async def test_resolves_and_closes(self, settings: Settings) -> None:
        """Test a full start -> resolve -> shutdown cycle."""
        client = FakeLookupClient()
        client.add_result(
            "Daft Punk", "One More Time", artwork_for("Daft Punk", "One More Time")
        )

        async with artwork_engine_lifespan(
            settings, client, configure=False
        ) as engine:
            entry = await engine.resolve_one(
                "Daft Punk", "One More Time", Priority.HIGH
            )
            assert entry.provenance is Provenance.EXACT

        assert client.closed
        assert not HttpClientPool.is_initialized()
        with pytest.raises(ConfigurationError):
            await engine.resolve_one("Daft Punk", "One More Time")

    async def test_closes_on_error(self, settings: Settings) -> None:
        """Test that the engine is closed when the body raises."""
        client = FakeLookupClient()

        with pytest.raises(RuntimeError, match="boom"):
            async with artwork_engine_lifespan(settings, client, configure=False):
                raise RuntimeError("boom")

        assert client.closed

    async def test_configures_logging(self, settings: Settings) -> None:
        """Test that configure=True sets up the root logger from settings."""
        root_logger = logging.getLogger()
        handlers = root_logger.handlers[:]
        level = root_logger.level
        settings.observability.level = "WARNING"

        try:
            async with artwork_engine_lifespan(settings, FakeLookupClient()):
                assert root_logger.level == logging.WARNING
        finally:
            root_logger.handlers[:] = handlers
            root_logger.setLevel(level)
