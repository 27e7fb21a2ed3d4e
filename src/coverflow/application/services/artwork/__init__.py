"""Artwork resolution services.

Hey future me - import from here, not from the individual modules:

    from coverflow.application.services.artwork import ResolutionEngine, Priority
"""

from coverflow.application.services.artwork.coordinator import (
    PendingRequest,
    RequestCoordinator,
)
from coverflow.application.services.artwork.engine import ResolutionEngine
from coverflow.application.services.artwork.fallback import FallbackSynthesizer
from coverflow.application.services.artwork.match_scorer import MatchScorer, best_match
from coverflow.application.services.artwork.scheduler import (
    PriorityScheduler,
    ScheduleConfig,
    plan,
)
from coverflow.domain.entities.artwork import Priority

__all__ = [
    "FallbackSynthesizer",
    "MatchScorer",
    "PendingRequest",
    "Priority",
    "PriorityScheduler",
    "RequestCoordinator",
    "ResolutionEngine",
    "ScheduleConfig",
    "best_match",
    "plan",
]
