import json
from pathlib import Path

import pytest

from beyond_epic.achievements import Achievement
from beyond_epic.core.events import EventType
from beyond_epic.errors import SessionBusy
from beyond_epic.rarity.table import RarityTable, RarityTier
from beyond_epic.session import DEFAULT_USERNAME, IMPORT_FAILED_MESSAGE, GameSession
from beyond_epic.shop import AUTO_CLICKER_ID


def _session(clock, scripted_rng, table=None):
    table = table or RarityTable([RarityTier("Very Common", 60, 0), RarityTier("Epic", 40, 50)])
    return GameSession(table=table, rng=scripted_rng(), clock=clock)


def test_discover_folds_and_publishes(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    events = []
    session.subscribe(EventType.DISCOVERY_RESOLVED, events.append)
    session.subscribe(EventType.ACHIEVEMENT_UNLOCKED, events.append)

    result = session.on_discover()

    assert result.outcome.name == "Very Common"
    assert session.state.total_discoveries == 1
    assert [e.name for e in events] == [EventType.DISCOVERY_RESOLVED, EventType.ACHIEVEMENT_UNLOCKED]
    assert events[1].payload["id"] == "firstClick"


def test_purchase_starts_auto_clicker(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.state.total_points = 1_000
    purchased = []
    session.subscribe(EventType.SHOP_PURCHASED, purchased.append)

    result = session.purchase(AUTO_CLICKER_ID)

    assert result.accepted
    assert session.state.total_points == 950
    assert session.auto_trigger.handle is not None
    assert purchased[0].payload["item"] == AUTO_CLICKER_ID

    clock.advance(2_000)
    assert session.tick() == 1
    assert session.state.total_discoveries == 1

    session.purchase(AUTO_CLICKER_ID)
    clock.advance(1_000)
    assert session.tick() == 1
    assert len(session.timers) == 1


def test_rejected_purchase_is_published(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    rejected = []
    session.subscribe(EventType.SHOP_REJECTED, rejected.append)
    result = session.purchase("doublePoints")
    assert not result.accepted
    assert rejected[0].payload["reason"] == "insufficient_points"


def test_time_freeze_holds_displayed_elapsed(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.state.total_points = 100
    clock.advance(5_000)
    assert session.elapsed_display() == "5.0s"

    session.purchase("timeFreeze")
    clock.advance(10_000)
    assert session.elapsed_display() == "5.0s"

    clock.advance(20_000)
    assert session.elapsed_display() == "35.0s"


def test_usernames_and_music(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    assert session.ensure_username("   ") == DEFAULT_USERNAME
    assert session.ensure_username("Zed") == DEFAULT_USERNAME
    assert session.change_username("  Zed ")
    assert session.state.username == "Zed"
    assert not session.change_username("")
    assert session.toggle_music() is False
    assert session.toggle_music() is True


def test_reset_keeps_identity(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.ensure_username("Ann")
    start = session.state.start_time
    session.state.total_points = 1_000
    session.purchase(AUTO_CLICKER_ID)
    session.on_discover()

    session.reset()

    assert session.state.username == "Ann"
    assert session.state.start_time == start
    assert session.state.total_discoveries == 0
    assert session.modifiers.stack_count(AUTO_CLICKER_ID) == 0
    assert session.auto_trigger.handle is None


def test_export_import_round_trip(tmp_path: Path, clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.ensure_username("Ann")
    session.state.total_points = 1_000
    session.purchase(AUTO_CLICKER_ID)
    session.purchase("doublePoints")
    path = session.export_to_file(tmp_path)
    assert path.name == "beyond-epic-save.json"

    other = _session(clock, scripted_rng)
    imported = []
    other.subscribe(EventType.SNAPSHOT_IMPORTED, imported.append)
    result = other.import_from_file(path)

    assert result.ok
    assert other.state == session.state
    assert other.modifiers.stack_count(AUTO_CLICKER_ID) == 1
    assert other.auto_trigger.handle is not None
    assert imported[0].payload["username"] == "Ann"


def test_invalid_import_leaves_state_untouched(tmp_path: Path, clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.on_discover()
    before = json.loads(session.export_snapshot())
    failures = []
    session.subscribe(EventType.SNAPSHOT_IMPORT_FAILED, failures.append)

    result = session.import_snapshot("{broken")

    assert not result.ok
    assert result.message == IMPORT_FAILED_MESSAGE
    assert json.loads(session.export_snapshot()) == before
    assert failures

    missing = session.import_from_file(tmp_path / "missing.json")
    assert missing.message == IMPORT_FAILED_MESSAGE


def test_import_while_folding_is_rejected(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    snapshot = session.export_snapshot()
    seen = {}

    def sneaky(state, ctx):
        seen["import"] = session.import_snapshot(snapshot)
        with pytest.raises(SessionBusy):
            session.on_discover()
        return False

    session.tracker.achievements.register(Achievement("sneaky", "Sneaky", sneaky))
    session.on_discover()

    assert seen["import"].ok is False
    assert session.state.total_discoveries == 1


def test_leaderboard_stub(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    assert session.on_open_leaderboard() == "Leaderboard integration pending server hookup."


def test_stats_view(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.on_discover()
    stats = session.stats()
    assert stats.clicks == 1
    assert stats.rarest == "Very Common"
    assert stats.achievements == "1/60"
    assert session.finds_line() == "Very Common (1)"


def test_auto_clicks_run_through_time_freeze(clock, scripted_rng):
    session = _session(clock, scripted_rng, table=RarityTable([RarityTier("Shiny", 1, 10)]))
    session.state.total_points = 10_000
    clock.advance(5_000)
    assert session.elapsed_display() == "5.0s"

    for item in (AUTO_CLICKER_ID, "doublePoints", "timeFreeze"):
        assert session.purchase(item).accepted
    points = []
    session.subscribe(EventType.DISCOVERY_RESOLVED, lambda e: points.append(e.payload["points"]))

    for _ in range(15):
        clock.advance(2_000)
        assert session.tick() == 1
        if clock.now() < session.modifiers.time_frozen_until:
            assert session.elapsed_display() == "5.0s"

    # Double Points lapses on the same millisecond as the fifteenth cycle.
    assert points == [20] * 14 + [10]
    assert "doublePoints" not in session.modifiers
    assert session.elapsed_display() == "35.0s"


def test_deeply_nested_import_is_rejected(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    before = session.export_snapshot()

    result = session.import_snapshot("[" * 200_000)

    assert not result.ok
    assert result.message == IMPORT_FAILED_MESSAGE
    assert session.export_snapshot() == before


def test_settings_edits_are_rejected_while_folding(clock, scripted_rng):
    session = _session(clock, scripted_rng)
    session.change_username("Ann")
    raised = []

    def meddler(state, ctx):
        for edit in (session.toggle_music, lambda: session.change_username("Bob")):
            with pytest.raises(SessionBusy):
                edit()
            raised.append(edit)
        return False

    session.tracker.achievements.register(Achievement("meddler", "Meddler", meddler))
    session.on_discover()

    assert len(raised) == 2
    assert session.state.username == "Ann"
    assert session.state.settings.music_on is True
    assert session.toggle_music() is False
