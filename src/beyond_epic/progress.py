from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Set

from .achievements import Achievement, AchievementContext, AchievementRegistry, default_achievements
from .engine import ResolvedOutcome
from .errors import InsufficientPoints
from .rarity.table import RarityTable

logger = logging.getLogger(__name__)

DEFAULT_BACKGROUND = "White"
RECENT_FINDS_LIMIT = 32


@dataclass(frozen=True)
class RarestFind:
    name: str
    tier_index: int
    points: int


@dataclass
class PlayerSettings:
    music_on: bool = True


def _recent_buffer() -> Deque[str]:
    return deque(maxlen=RECENT_FINDS_LIMIT)


@dataclass
class ProgressState:
    """The single mutable aggregate of player progress.

    ``recent_finds`` is session-only history for streak achievements and is
    neither persisted nor part of equality.
    """

    username: Optional[str] = None
    total_discoveries: int = 0
    total_points: int = 0
    finds_by_tier: Dict[str, int] = field(default_factory=dict)
    unlocked_tiers: Set[str] = field(default_factory=set)
    rarest_find: Optional[RarestFind] = None
    achievements_unlocked: Set[str] = field(default_factory=set)
    start_time: Optional[int] = None
    background: str = DEFAULT_BACKGROUND
    settings: PlayerSettings = field(default_factory=PlayerSettings)
    recent_finds: Deque[str] = field(default_factory=_recent_buffer, compare=False, repr=False)

    def spend_points(self, amount: int) -> None:
        if amount < 0:
            raise ValueError("Amount to spend cannot be negative")
        if amount > self.total_points:
            raise InsufficientPoints(f"Cannot spend {amount} points; only {self.total_points} available.")
        self.total_points -= amount
        logger.debug("Spent %d points (remaining: %d)", amount, self.total_points)

    def summary(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "total_discoveries": self.total_discoveries,
            "total_points": self.total_points,
            "rarest": self.rarest_find.name if self.rarest_find else None,
            "unlocked_tiers": len(self.unlocked_tiers),
            "achievements": len(self.achievements_unlocked),
        }


class ProgressTracker:
    """Folds resolved outcomes into ProgressState and evaluates achievements."""

    def __init__(self, table: RarityTable, achievements: Optional[AchievementRegistry] = None) -> None:
        self.table = table
        self.achievements = achievements if achievements is not None else default_achievements()

    def fold(self, state: ProgressState, outcome: ResolvedOutcome, now: int, auto_clickers: int = 0) -> List[Achievement]:
        """Apply one outcome and return achievements unlocked by it.

        The rarest find only changes on strictly more points, so the first
        tier to reach a given point value keeps the title.
        """
        if state.start_time is None:
            state.start_time = now
        name = outcome.tier.name
        state.total_discoveries += 1
        state.total_points += outcome.points_awarded
        state.finds_by_tier[name] = state.finds_by_tier.get(name, 0) + 1
        state.unlocked_tiers.add(name)
        state.recent_finds.append(name)

        if state.rarest_find is None or outcome.tier.points > state.rarest_find.points:
            state.rarest_find = RarestFind(name=name, tier_index=outcome.tier_index, points=outcome.tier.points)
            logger.debug("New rarest find: %s (%d points)", name, outcome.tier.points)

        return self.evaluate(state, auto_clickers)

    def evaluate(self, state: ProgressState, auto_clickers: int = 0) -> List[Achievement]:
        ctx = AchievementContext(table=self.table, auto_clickers=auto_clickers)
        return self.achievements.evaluate(state, ctx)

    def reset(self, state: ProgressState, now: int) -> None:
        """Zero progress in place, keeping the player's name and start time."""
        keep_username = state.username
        keep_start = state.start_time if state.start_time is not None else now
        fresh = ProgressState(username=keep_username, start_time=keep_start)
        for f in ("total_discoveries", "total_points", "finds_by_tier", "unlocked_tiers", "rarest_find",
                  "achievements_unlocked", "background", "settings", "recent_finds"):
            setattr(state, f, getattr(fresh, f))
        state.username = keep_username
        state.start_time = keep_start
        logger.info("Progress reset for %s", keep_username or "<unnamed>")


__all__ = [
    "DEFAULT_BACKGROUND",
    "PlayerSettings",
    "ProgressState",
    "ProgressTracker",
    "RarestFind",
]
