"""Tests for focus-driven planning."""

import pytest
from conftest import make_items

from coverflow.application.services.artwork.scheduler import (
    PriorityScheduler,
    ScheduleConfig,
    plan,
)
from coverflow.domain.entities.artwork import Priority, TrackItem
from coverflow.domain.exceptions import ValidationError
from coverflow.domain.value_objects.artwork_key import canonicalize


class TestPlanOrder:
    """Test the order of planned items."""

    def test_focus_in_the_middle(self) -> None:
        """Test nearest-first order with ties going to the larger index."""
        schedule = plan(make_items(10), focus_index=5)
        assert [entry.index for entry in schedule] == [5, 6, 4, 7, 3, 8, 2, 9, 1, 0]

    def test_focus_item_is_first_and_high(self) -> None:
        """Test that the focus item leads with tier HIGH."""
        schedule = plan(make_items(10), focus_index=3)
        assert schedule[0].index == 3
        assert schedule[0].distance_from_focus == 0
        assert schedule[0].tier is Priority.HIGH

    def test_distances_never_decrease(self) -> None:
        """Test that no farther item comes before a nearer one."""
        schedule = plan(make_items(25), focus_index=7)
        distances = [entry.distance_from_focus for entry in schedule]
        assert distances == sorted(distances)
        assert len(schedule) == 25

    def test_focus_at_the_edges(self) -> None:
        """Test focus on the first and last item."""
        assert [e.index for e in plan(make_items(4), focus_index=0)] == [0, 1, 2, 3]
        assert [e.index for e in plan(make_items(4), focus_index=3)] == [3, 2, 1, 0]

    def test_keys_are_canonical(self) -> None:
        """Test that planned keys match canonicalize()."""
        items = [TrackItem("Taylor Swift", "Anti-Hero", id="ts-1")]
        schedule = plan(items, focus_index=0)
        assert schedule[0].key == canonicalize("Taylor Swift", "Anti-Hero")
        assert schedule[0].item is items[0]

    def test_empty_list(self) -> None:
        """Test that an empty list plans to nothing."""
        assert plan([], focus_index=0) == []


class TestPlanTiers:
    """Test tier assignment."""

    def test_tiers_by_radius(self) -> None:
        """Test HIGH within preload_radius, NORMAL within lazy_radius, LOW beyond."""
        config = ScheduleConfig(preload_radius=1, lazy_radius=3)
        schedule = plan(make_items(10), focus_index=5, config=config)
        tiers = {entry.index: entry.tier for entry in schedule}

        assert tiers[5] is Priority.HIGH
        assert tiers[4] is Priority.HIGH
        assert tiers[6] is Priority.HIGH
        assert tiers[3] is Priority.NORMAL
        assert tiers[8] is Priority.NORMAL
        assert tiers[1] is Priority.LOW
        assert tiers[9] is Priority.LOW
        assert tiers[0] is Priority.LOW

    def test_background_can_be_excluded(self) -> None:
        """Test that include_background=False drops LOW items."""
        config = ScheduleConfig(preload_radius=1, lazy_radius=2, include_background=False)
        schedule = plan(make_items(10), focus_index=5, config=config)
        assert sorted(entry.index for entry in schedule) == [3, 4, 5, 6, 7]

    def test_default_radii(self) -> None:
        """Test the 5 / 10 defaults."""
        schedule = plan(make_items(30), focus_index=0)
        tiers = {entry.index: entry.tier for entry in schedule}
        assert tiers[5] is Priority.HIGH
        assert tiers[6] is Priority.NORMAL
        assert tiers[10] is Priority.NORMAL
        assert tiers[11] is Priority.LOW

    def test_tier_for(self) -> None:
        """Test the distance to tier mapping directly."""
        config = ScheduleConfig(preload_radius=0, lazy_radius=0)
        assert config.tier_for(0) is Priority.HIGH
        assert config.tier_for(1) is Priority.LOW


class TestPlanValidation:
    """Test contract violations."""

    @pytest.mark.parametrize("focus_index", [-1, 10, 99])
    def test_focus_out_of_range(self, focus_index: int) -> None:
        """Test that the focus must point into the list."""
        with pytest.raises(ValidationError):
            plan(make_items(10), focus_index=focus_index)

    def test_item_without_artist_and_track(self) -> None:
        """Test that an unkeyable item is rejected."""
        items = [*make_items(2), TrackItem("", "", id="broken")]
        with pytest.raises(ValidationError):
            plan(items, focus_index=0)

    def test_lazy_smaller_than_preload(self) -> None:
        """Test that radii must nest."""
        with pytest.raises(ValidationError):
            ScheduleConfig(preload_radius=5, lazy_radius=2)

    def test_negative_radius(self) -> None:
        """Test that radii can't be negative."""
        with pytest.raises(ValidationError):
            ScheduleConfig(preload_radius=-1, lazy_radius=2)


class TestPriorityScheduler:
    """Test the config-bound wrapper."""

    def test_uses_default_config(self) -> None:
        """Test that the bound config is applied."""
        scheduler = PriorityScheduler(
            ScheduleConfig(preload_radius=0, lazy_radius=0, include_background=False)
        )
        schedule = scheduler.plan(make_items(5), focus_index=2)
        assert [entry.index for entry in schedule] == [2]

    def test_override_config(self) -> None:
        """Test that a per-call config wins."""
        scheduler = PriorityScheduler(
            ScheduleConfig(preload_radius=0, lazy_radius=0, include_background=False)
        )
        schedule = scheduler.plan(make_items(5), focus_index=2, config=ScheduleConfig())
        assert len(schedule) == 5
