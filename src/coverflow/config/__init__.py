"""Configuration module for coverflow."""

from .settings import (
    ArtworkSettings,
    ItunesSettings,
    ObservabilitySettings,
    RateLimitSettings,
    ScheduleSettings,
    Settings,
    get_settings,
)

__all__ = [
    "ArtworkSettings",
    "ItunesSettings",
    "ObservabilitySettings",
    "RateLimitSettings",
    "ScheduleSettings",
    "Settings",
    "get_settings",
]
