"""Focus-driven priority scheduling.

Hey future me - the carousel has a focused item (the one in the middle) and the user
scrolls. plan() turns "list + focus" into the order we should fetch covers in:

    items:     0  1  2  3  4 [5] 6  7  8  9
    distance:  5  4  3  2  1  0  1  2  3  4
    order:     5, 6, 4, 7, 3, 8, 2, 9, 1, 0

Rules:
- focus item first, always HIGH
- ascending distance from the focus
- equal distance: the item AFTER the focus (larger index) first - users scroll forward
- distance <= preload_radius -> HIGH, <= lazy_radius -> NORMAL, rest -> LOW

plan() is pure. It knows nothing about the cache or in-flight requests; the engine
skips what's already resolved while walking the plan.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coverflow.domain.entities.artwork import Priority, ScheduleItem, TrackItem
from coverflow.domain.exceptions import ValidationError
from coverflow.domain.value_objects.artwork_key import canonicalize

if TYPE_CHECKING:
    from coverflow.config.settings import ScheduleSettings


@dataclass(frozen=True)
class ScheduleConfig:
    """Radii for tier assignment.

    Attributes:
        preload_radius: Items this close to the focus are HIGH
        lazy_radius: Items this close (but outside preload_radius) are NORMAL
        include_background: Plan LOW items too (False = only the two radii)
    """

    preload_radius: int = 5
    lazy_radius: int = 10
    include_background: bool = True

    def __post_init__(self) -> None:
        if self.preload_radius < 0 or self.lazy_radius < 0:
            raise ValidationError(
                f"Radii must be >= 0 (preload={self.preload_radius}, "
                f"lazy={self.lazy_radius})"
            )
        if self.lazy_radius < self.preload_radius:
            raise ValidationError(
                f"lazy_radius ({self.lazy_radius}) must be >= preload_radius "
                f"({self.preload_radius})"
            )

    @classmethod
    def from_settings(cls, settings: ScheduleSettings) -> ScheduleConfig:
        return cls(
            preload_radius=settings.preload_radius,
            lazy_radius=settings.lazy_radius,
            include_background=settings.include_background,
        )

    def tier_for(self, distance: int) -> Priority:
        """Map distance from focus to a priority tier."""
        if distance <= self.preload_radius:
            return Priority.HIGH
        if distance <= self.lazy_radius:
            return Priority.NORMAL
        return Priority.LOW


def plan(
    items: Sequence[TrackItem],
    focus_index: int,
    config: ScheduleConfig | None = None,
) -> list[ScheduleItem]:
    """Order items by distance from the focus and assign tiers.

    Args:
        items: The caller's full list
        focus_index: Position of the focused item
        config: Radii (defaults: 5 / 10, background included)

    Returns:
        ScheduleItems, nearest first (empty for an empty list)

    Raises:
        ValidationError: If focus_index is outside the list or an item has
            neither artist nor track
    """
    if not items:
        return []

    if not 0 <= focus_index < len(items):
        raise ValidationError(
            f"focus_index {focus_index} outside item list of length {len(items)}"
        )

    config = config or ScheduleConfig()

    scheduled: list[ScheduleItem] = []
    for index, item in enumerate(items):
        distance = abs(index - focus_index)
        tier = config.tier_for(distance)
        if tier is Priority.LOW and not config.include_background:
            continue
        scheduled.append(
            ScheduleItem(
                key=canonicalize(item.artist, item.track),
                index=index,
                distance_from_focus=distance,
                tier=tier,
                item=item,
            )
        )

    # Nearest first, ties -> larger index first
    scheduled.sort(key=lambda entry: (entry.distance_from_focus, -entry.index))
    return scheduled


class PriorityScheduler:
    """plan() bound to a default ScheduleConfig."""

    def __init__(self, config: ScheduleConfig | None = None) -> None:
        self.config = config or ScheduleConfig()

    def plan(
        self,
        items: Sequence[TrackItem],
        focus_index: int,
        config: ScheduleConfig | None = None,
    ) -> list[ScheduleItem]:
        return plan(items, focus_index, config or self.config)


__all__ = ["PriorityScheduler", "ScheduleConfig", "plan"]
