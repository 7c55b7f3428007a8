import pytest

from beyond_epic.engine import ResolvedOutcome
from beyond_epic.errors import InsufficientPoints
from beyond_epic.progress import ProgressState, ProgressTracker
from beyond_epic.rarity import default_rarity_table


def _outcome(table, name, multiplier=1):
    tier = table.get(name)
    return ResolvedOutcome(tier=tier, tier_index=table.index_of(name), points_awarded=tier.points * multiplier)


def test_fold_updates_counts_and_points():
    table = default_rarity_table()
    tracker = ProgressTracker(table)
    state = ProgressState(username="Ann")

    tracker.fold(state, _outcome(table, "Rare"), now=500)
    tracker.fold(state, _outcome(table, "Rare", multiplier=2), now=600)

    assert state.start_time == 500
    assert state.total_discoveries == 2
    assert state.total_points == 6
    assert state.finds_by_tier == {"Rare": 2}
    assert state.unlocked_tiers == {"Rare"}


def test_rarest_find_only_moves_on_strictly_more_points():
    table = default_rarity_table()
    tracker = ProgressTracker(table)
    state = ProgressState()

    tracker.fold(state, _outcome(table, "Beyond Epic"), now=0)
    assert state.rarest_find.name == "Beyond Epic"

    # Legendary (40) sits after Beyond Epic (50) in the table but is worth less
    tracker.fold(state, _outcome(table, "Legendary"), now=1)
    assert state.rarest_find.name == "Beyond Epic"

    # multiplied awards do not count, only base tier points
    tracker.fold(state, _outcome(table, "Epic", multiplier=10), now=2)
    assert state.rarest_find.name == "Beyond Epic"
    assert state.rarest_find.points == 50

    tracker.fold(state, _outcome(table, "Ultra Legendary"), now=3)
    assert state.rarest_find.name == "Ultra Legendary"


def test_reset_keeps_username_and_start_time():
    table = default_rarity_table()
    tracker = ProgressTracker(table)
    state = ProgressState(username="Ann")
    tracker.fold(state, _outcome(table, "Epic"), now=100)
    state.background = "Gold"
    state.settings.music_on = False

    tracker.reset(state, now=9_999)

    assert state == ProgressState(username="Ann", start_time=100)
    assert len(state.recent_finds) == 0


def test_spend_points():
    state = ProgressState(total_points=10)
    state.spend_points(4)
    assert state.total_points == 6
    with pytest.raises(InsufficientPoints):
        state.spend_points(7)
    assert state.total_points == 6
