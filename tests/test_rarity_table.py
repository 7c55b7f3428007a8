import json
from pathlib import Path

import pytest

from beyond_epic.errors import EmptyWeightPool, InvalidRarityTable
from beyond_epic.modifiers import ModifierSet, exclude_tier, restrict_from_index
from beyond_epic.rarity import (
    RarityTable,
    RarityTier,
    default_rarity_table,
    load_rarity_table,
    rarity_table_from_dict,
)


def test_bundled_table_has_thirty_ordered_tiers():
    table = default_rarity_table()
    assert len(table) == 30
    assert table[0].name == "Very Common"
    assert table.index_of("Epic") == 7
    assert table.get("Beyond Epic").points == 50
    assert table.get("Legendary").points == 40


def test_table_rejects_empty_and_duplicates():
    with pytest.raises(InvalidRarityTable):
        RarityTable([])
    with pytest.raises(InvalidRarityTable):
        RarityTable([RarityTier("A", 1, 0), RarityTier("A", 2, 1)])


@pytest.mark.parametrize("weight, points", [(0, 1), (-1, 1), (1, -5), (1, True)])
def test_tier_validation(weight, points):
    with pytest.raises(InvalidRarityTable):
        RarityTier("X", weight, points)


def test_pool_excludes_zeroed_tiers(small_table):
    mods = ModifierSet()
    mods.activate(exclude_tier("luckBoost", "Very Common", expires_at=5_000))
    pool = small_table.resolve_weighted_pool(mods, now=1_000)
    assert [t.name for t, _ in pool] == ["Common", "Epic", "Legendary"]

    # once expired the tier is drawable again
    pool = small_table.resolve_weighted_pool(mods, now=5_000)
    assert len(pool) == 4


def test_restrict_from_index_keeps_that_tier_and_later(small_table):
    mods = ModifierSet()
    mods.activate(restrict_from_index("goldenHour", small_table.index_of("Epic"), expires_at=10))
    pool = small_table.resolve_weighted_pool(mods, now=0)
    assert [t.name for t, _ in pool] == ["Epic", "Legendary"]


def test_empty_pool_raises(two_tier_table):
    mods = ModifierSet()
    mods.activate(exclude_tier("a", "A", expires_at=100))
    mods.activate(exclude_tier("b", "B", expires_at=100))
    with pytest.raises(EmptyWeightPool):
        two_tier_table.resolve_weighted_pool(mods, now=0)
    assert two_tier_table.fallback_tier().name == "A"


def test_schema_validation_rejects_bad_documents():
    with pytest.raises(InvalidRarityTable):
        rarity_table_from_dict({"tiers": []})
    with pytest.raises(InvalidRarityTable):
        rarity_table_from_dict({"tiers": [{"name": "A", "points": 1}]})
    with pytest.raises(InvalidRarityTable):
        rarity_table_from_dict({"tiers": [{"name": "A", "weight": 1, "chance": 1, "points": 1}]})


def test_load_override_from_file_and_env(tmp_path: Path, monkeypatch):
    doc = {"tiers": [{"name": "Dust", "weight": 3, "points": 0}, {"name": "Gem", "weight": 1, "points": 9}]}
    path = tmp_path / "table.json"
    path.write_text(json.dumps(doc), encoding="utf-8")

    table = load_rarity_table(path)
    assert [t.name for t in table] == ["Dust", "Gem"]
    assert table.total_weight == 4

    monkeypatch.setenv("BE_RARITY_TABLE", str(path))
    assert default_rarity_table().index_of("Gem") == 1
