from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .modifiers import ModifierSet
from .progress import ProgressState
from .rarity.table import RarityTable
from .settings import DisplaySettings
from .shop import AUTO_CLICKER_ID

_UNKNOWN_INDEX = 999


def fmt(num: float) -> str:
    """Compact number formatting for points: 1234 -> '1.23K'."""
    if num >= 1_000_000_000:
        return f"{num / 1_000_000_000:.2f}B"
    if num >= 1_000_000:
        return f"{num / 1_000_000:.2f}M"
    if num >= 1_000:
        return f"{num / 1_000:.2f}K"
    return str(num)


def _by_table_order(state: ProgressState, table: RarityTable) -> List[str]:
    def key(name: str) -> int:
        idx = table.index_of(name)
        return idx if idx is not None else _UNKNOWN_INDEX

    return sorted(state.finds_by_tier, key=key)


def finds_line(state: ProgressState, table: RarityTable) -> str:
    return ", ".join(f"{name} ({state.finds_by_tier[name]})" for name in _by_table_order(state, table))


@dataclass(frozen=True)
class StatsView:
    """Display-ready "stats for nerds" values."""

    clicks: int
    points: str
    rarest: str
    auto_clickers: int
    background: str
    achievements: str
    elapsed: str
    tier_percentages: List[Tuple[str, str]] = field(default_factory=list)

    def lines(self) -> List[str]:
        out = [
            f"Clicks: {self.clicks}",
            f"Points: {self.points}",
            f"Rarest: {self.rarest}",
            f"Auto-Clickers: {self.auto_clickers}",
            f"Background: {self.background}",
            f"Achievements: {self.achievements}",
            f"Time: {self.elapsed}",
        ]
        out.extend(f"{name}: {pct}%" for name, pct in self.tier_percentages)
        return out


def tier_percentages(state: ProgressState, table: RarityTable) -> List[Tuple[str, str]]:
    """Empirical share of each found tier, in table order."""
    total = sum(state.finds_by_tier.values())
    if total <= 0:
        return []
    return [(name, f"{state.finds_by_tier[name] / total * 100:.2f}") for name in _by_table_order(state, table)]


def build_stats(
    state: ProgressState,
    modifiers: ModifierSet,
    table: RarityTable,
    settings: Optional[DisplaySettings] = None,
    elapsed: str = "0.0s",
) -> StatsView:
    display = settings or DisplaySettings()
    return StatsView(
        clicks=state.total_discoveries,
        points=fmt(state.total_points),
        rarest=state.rarest_find.name if state.rarest_find else "None",
        auto_clickers=modifiers.stack_count(AUTO_CLICKER_ID),
        background=state.background,
        achievements=f"{len(state.achievements_unlocked)}/{display.total_achievements}",
        elapsed=elapsed,
        tier_percentages=tier_percentages(state, table),
    )


__all__ = ["StatsView", "build_stats", "finds_line", "fmt", "tier_percentages"]
