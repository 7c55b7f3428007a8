import sys
from pathlib import Path
from typing import List, Sequence

import pytest

# Ensure 'src' is on sys.path for test imports without installing the package
ROOT = Path(__file__).resolve().parents[1]
src = ROOT / "src"
if str(src) not in sys.path:
    sys.path.insert(0, str(src))

from beyond_epic.core.clock import ManualClock  # noqa: E402
from beyond_epic.rarity.table import RarityTable, RarityTier  # noqa: E402


class ScriptedRNG:
    """Random source that replays fixed draws.

    ``uniform`` returns the scripted values in order (clamped into [a, b]);
    ``choice`` always picks the element at ``choice_index``.
    """

    def __init__(self, draws: Sequence[float] = (), choice_index: int = 0) -> None:
        self.draws: List[float] = list(draws)
        self.choice_index = choice_index
        self.uniform_calls = 0
        self.choice_calls = 0

    def uniform(self, a: float, b: float) -> float:
        self.uniform_calls += 1
        value = self.draws.pop(0) if self.draws else a
        return min(max(value, a), b)

    def choice(self, seq):
        self.choice_calls += 1
        return seq[self.choice_index % len(seq)]


@pytest.fixture
def scripted_rng():
    return ScriptedRNG


@pytest.fixture
def two_tier_table() -> RarityTable:
    return RarityTable([RarityTier("A", 90, 0), RarityTier("B", 10, 100)])


@pytest.fixture
def small_table() -> RarityTable:
    return RarityTable([
        RarityTier("Very Common", 50, 0),
        RarityTier("Common", 30, 1),
        RarityTier("Epic", 15, 12),
        RarityTier("Legendary", 5, 40),
    ])


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start_ms=1_000_000)
