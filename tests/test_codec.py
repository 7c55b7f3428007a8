import json

import pytest

from beyond_epic.errors import MalformedSnapshot
from beyond_epic.modifiers import ForceOutcome, ModifierSet, PointsMultiplier, Reweight
from beyond_epic.persistence import deserialize, serialize
from beyond_epic.progress import PlayerSettings, ProgressState, RarestFind
from beyond_epic.rarity import default_rarity_table
from beyond_epic.shop import AUTO_CLICKER_ID, Shop


@pytest.fixture
def shop():
    return Shop(default_rarity_table())


def _populated(shop):
    state = ProgressState(
        username="Ann",
        total_discoveries=42,
        total_points=1234,
        finds_by_tier={"Very Common": 30, "Epic": 12},
        unlocked_tiers={"Very Common", "Epic"},
        rarest_find=RarestFind(name="Epic", tier_index=7, points=12),
        achievements_unlocked={"firstClick", "unlucky"},
        start_time=1_000,
        background="Gold",
        settings=PlayerSettings(music_on=False),
    )
    mods = ModifierSet(registry=shop.registry)
    shop.prepare(mods)
    mods.set_stack_count(AUTO_CLICKER_ID, 3)
    mods.activate_effect("doublePoints", now=2_000)
    mods.activate_effect("luckyDay", now=2_000)
    mods.activate_effect("luckyClick", now=2_000)
    mods.activate_effect("timeFreeze", now=2_000)
    return state, mods


def test_round_trip_keeps_every_field(shop):
    state, mods = _populated(shop)
    text = serialize(state, mods)

    restored, restored_mods = deserialize(text, shop.registry, now=3_000)

    assert restored == state
    assert restored_mods.stack_count(AUTO_CLICKER_ID) == 3
    assert restored_mods.time_frozen_until == 32_000
    assert isinstance(restored_mods.get("doublePoints"), PointsMultiplier)
    assert restored_mods.get("doublePoints").expires_at == 32_000
    assert isinstance(restored_mods.get("luckyDay"), Reweight)
    assert isinstance(restored_mods.get("luckyClick"), ForceOutcome)
    assert serialize(restored, restored_mods) == text


def test_snapshot_uses_camel_case_keys(shop):
    state, mods = _populated(shop)
    data = json.loads(serialize(state, mods))
    assert data["totalClicks"] == 42
    assert data["autoClickers"] == 3
    assert data["rarestFind"] == {"name": "Epic", "tierIndex": 7, "points": 12}
    assert data["unlockedRarities"] == ["Epic", "Very Common"]
    assert data["activeEffects"]["luckyClick"] == {"expiresAt": None, "usesRemaining": 1}
    assert data["activeEffects"]["doublePoints"] == {"expiresAt": 32_000}
    assert data["settings"] == {"musicOn": False}


def test_partial_snapshot_defaults_missing_fields(shop):
    state, mods = deserialize('{"totalClicks":5,"points":10}', shop.registry)
    assert state.total_discoveries == 5
    assert state.total_points == 10
    assert state.finds_by_tier == {}
    assert state.unlocked_tiers == set()
    assert state.settings.music_on is True
    assert state.background == "White"
    assert mods.stack_count(AUTO_CLICKER_ID) == 0


def test_empty_snapshot_equals_fresh_state(shop):
    state, _ = deserialize("{}", shop.registry)
    assert state == ProgressState()


def test_missing_start_time_defaults_to_now(shop):
    state, _ = deserialize('{"username": "Bo"}', shop.registry, now=777)
    assert state.start_time == 777
    assert state.username == "Bo"


def test_malformed_fields_fall_back(shop):
    text = json.dumps({
        "totalClicks": "many",
        "points": True,
        "finds": {"Epic": 2, "Rare": "x"},
        "unlockedRarities": "Epic",
        "rarestFind": 5,
        "autoClickers": 99,
        "settings": {"musicOn": "yes"},
        "someFutureField": [1, 2, 3],
    })
    state, mods = deserialize(text, shop.registry)
    assert state.total_discoveries == 0
    assert state.total_points == 0
    assert state.finds_by_tier == {"Epic": 2}
    assert state.unlocked_tiers == set()
    assert state.rarest_find is None
    assert state.settings.music_on is True
    assert mods.stack_count(AUTO_CLICKER_ID) == 10


def test_unknown_and_expired_effects_are_dropped(shop, caplog):
    text = json.dumps({"activeEffects": {
        "megaBoost": {"expiresAt": 99_999},
        "doublePoints": {"expiresAt": 500},
        "triplePoints": {"expiresAt": 5_000},
    }})
    with caplog.at_level("WARNING"):
        _, mods = deserialize(text, shop.registry, now=1_000)
    assert "megaBoost" not in mods
    assert "doublePoints" not in mods
    assert mods.get("triplePoints").factor == 3.0
    assert "megaBoost" in caplog.text


@pytest.mark.parametrize("text", ["not json", "[1, 2]", "42", ""])
def test_malformed_text_raises(shop, text):
    with pytest.raises(MalformedSnapshot):
        deserialize(text, shop.registry)


def test_deeply_nested_text_raises(shop):
    with pytest.raises(MalformedSnapshot):
        deserialize("[" * 200_000, shop.registry)


def test_timed_effect_without_expiry_is_expired(shop, caplog):
    text = json.dumps({"activeEffects": {
        "luckyDay": {},
        "doublePoints": {"expiresAt": None},
        "luckyClick": {"expiresAt": None, "usesRemaining": 1},
    }})
    with caplog.at_level("WARNING"):
        _, mods = deserialize(text, shop.registry, now=10**13)
    assert "luckyDay" not in mods
    assert "doublePoints" not in mods
    assert mods.get("luckyClick").uses_remaining == 1
    assert "no expiry" in caplog.text

    _, kept = deserialize(text, shop.registry)
    assert kept.get("luckyDay").expires_at == 0
