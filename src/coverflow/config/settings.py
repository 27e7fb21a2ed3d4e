"""Application settings loaded from environment variables.

Hey future me - every group has its OWN env prefix so a .env file stays readable:

    ITUNES_RESULT_LIMIT=10
    RATE_LIMIT_MIN_INTERVAL_SECONDS=0.5
    SCHEDULE_PRELOAD_RADIUS=3
    ARTWORK_PRELOAD_IMAGES=true
    LOG_LEVEL=DEBUG

get_settings() is cached - call get_settings.cache_clear() in tests that tweak env vars.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ItunesSettings(BaseSettings):
    """iTunes Search API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ITUNES_", env_file=".env", extra="ignore"
    )

    base_url: str = "https://itunes.apple.com/search"
    media: str = "music"
    entity: str = "song"
    # Small on purpose - we only score a handful of candidates
    result_limit: int = Field(default=5, ge=1, le=200)
    country: str | None = None
    timeout_seconds: float = Field(default=10.0, gt=0)
    # Thumbnail URLs look like .../100x100bb.jpg - swap the size token for the big one
    thumbnail_token: str = "100x100"
    artwork_token: str = "600x600"
    user_agent: str = "coverflow-artwork/0.4 (+https://github.com/coverflow/artwork)"


class RateLimitSettings(BaseSettings):
    """Spacing between search calls.

    iTunes allows roughly 20 requests/minute per IP before it starts answering 403/429.
    Batches of max_concurrent calls with a longer pause between batches keep us under it.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_", env_file=".env", extra="ignore"
    )

    min_interval_seconds: float = Field(default=0.2, ge=0)
    max_concurrent: int = Field(default=3, ge=1)
    batch_pause_seconds: float = Field(default=1.0, ge=0)
    initial_backoff_seconds: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_backoff_seconds: float = Field(default=60.0, ge=0)


class ScheduleSettings(BaseSettings):
    """Focus-driven scheduling radii."""

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULE_", env_file=".env", extra="ignore"
    )

    preload_radius: int = Field(default=5, ge=0)
    lazy_radius: int = Field(default=10, ge=0)
    include_background: bool = True

    @model_validator(mode="after")
    def _check_radii(self) -> "ScheduleSettings":
        if self.lazy_radius < self.preload_radius:
            raise ValueError(
                f"lazy_radius ({self.lazy_radius}) must be >= preload_radius "
                f"({self.preload_radius})"
            )
        return self


class ArtworkSettings(BaseSettings):
    """Matching, placeholder and preload behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="ARTWORK_", env_file=".env", extra="ignore"
    )

    # A match must score STRICTLY more than this (5 = the artwork-presence bonus alone)
    min_match_score: int = Field(default=5, ge=0)
    fallback_size: int = Field(default=600, ge=64, le=2000)
    fallback_artist_max_length: int = Field(default=20, ge=4)
    fallback_track_max_length: int = Field(default=25, ge=4)
    preload_images: bool = False
    preload_timeout_seconds: float = Field(default=10.0, gt=0)
    # None = FALLBACK entries stay until clear_all(). Set to retry failed lookups after a cooldown.
    fallback_retry_seconds: float | None = Field(default=None, gt=0)


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=".env", extra="ignore"
    )

    level: str = "INFO"
    json_format: bool = False


class Settings(BaseSettings):
    """Top-level settings composed of the groups above."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "coverflow"
    itunes: ItunesSettings = Field(default_factory=ItunesSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    artwork: ArtworkSettings = Field(default_factory=ArtworkSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()


__all__ = [
    "ArtworkSettings",
    "ItunesSettings",
    "ObservabilitySettings",
    "RateLimitSettings",
    "ScheduleSettings",
    "Settings",
    "get_settings",
]
