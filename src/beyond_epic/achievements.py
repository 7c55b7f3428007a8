from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Iterator, List, Optional

from .rarity.table import RarityTable

if TYPE_CHECKING:  # pragma: no cover
    from .progress import ProgressState

logger = logging.getLogger(__name__)

STREAK_LENGTH = 5


@dataclass(frozen=True)
class AchievementContext:
    """Read-only facts an achievement predicate may need beyond ProgressState."""

    table: RarityTable
    auto_clickers: int = 0


Predicate = Callable[["ProgressState", AchievementContext], bool]


@dataclass(frozen=True)
class Achievement:
    id: str
    name: str
    predicate: Predicate
    description: str = ""


class AchievementRegistry:
    """Ordered collection of achievements with unique ids."""

    def __init__(self, achievements: Optional[Iterable[Achievement]] = None) -> None:
        self._items: Dict[str, Achievement] = {}
        for a in achievements or []:
            self.register(a)

    def register(self, achievement: Achievement) -> None:
        if achievement.id in self._items:
            raise ValueError(f"Duplicate achievement id: {achievement.id}")
        self._items[achievement.id] = achievement

    def __iter__(self) -> Iterator[Achievement]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, achievement_id: str) -> Optional[Achievement]:
        return self._items.get(achievement_id)

    def evaluate(self, state: "ProgressState", ctx: AchievementContext) -> List[Achievement]:
        """Unlock every locked achievement whose predicate now holds.

        Already unlocked achievements are skipped, so each one transitions
        exactly once. A failing predicate is logged and treated as false.
        """
        unlocked: List[Achievement] = []
        for a in self._items.values():
            if a.id in state.achievements_unlocked:
                continue
            try:
                holds = bool(a.predicate(state, ctx))
            except Exception:
                logger.exception("Achievement predicate '%s' failed", a.id)
                continue
            if holds:
                state.achievements_unlocked.add(a.id)
                unlocked.append(a)
                logger.info("Achievement unlocked: %s", a.name)
        return unlocked


def _recent_streak(state: "ProgressState", length: int, test: Callable[[str], bool]) -> bool:
    recent = list(state.recent_finds)
    if len(recent) < length:
        return False
    return all(test(name) for name in recent[-length:])


def _unlucky(state: "ProgressState", ctx: AchievementContext) -> bool:
    return _recent_streak(state, STREAK_LENGTH, lambda name: name == "Very Common")


def _lucky(state: "ProgressState", ctx: AchievementContext) -> bool:
    epic = ctx.table.index_of("Epic")
    if epic is None:
        return False

    def epic_or_better(name: str) -> bool:
        idx = ctx.table.index_of(name)
        return idx is not None and idx >= epic

    return _recent_streak(state, STREAK_LENGTH, epic_or_better)


def default_achievements() -> AchievementRegistry:
    # "beyondPerfect" and "perfectCompletion" read as contradictory (one implies
    # having used everything, the other forbids auto-clickers); kept as designed.
    return AchievementRegistry([
        Achievement("firstClick", "First Click",
                    lambda s, c: s.total_discoveries >= 1),
        Achievement("oneMillion", "One in a Million",
                    lambda s, c: s.total_discoveries >= 1_000_000),
        Achievement("beyondPerfect", "Beyond Perfect",
                    lambda s, c: len(s.unlocked_tiers) >= 57 and len(s.achievements_unlocked) >= 59),
        Achievement("perfectCompletion", "Perfect Completion",
                    lambda s, c: len(s.unlocked_tiers) >= 50 and c.auto_clickers == 0),
        Achievement("unlucky", "Unlucky", _unlucky,
                    description=f"{STREAK_LENGTH} Very Common finds in a row"),
        Achievement("lucky", "Lucky!", _lucky,
                    description=f"{STREAK_LENGTH} Epic-or-better finds in a row"),
    ])


__all__ = [
    "Achievement",
    "AchievementContext",
    "AchievementRegistry",
    "STREAK_LENGTH",
    "default_achievements",
]
