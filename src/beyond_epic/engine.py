from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

from .errors import EmptyWeightPool
from .modifiers import (
    ForceOutcome,
    FreezeClock,
    Modifier,
    ModifierSet,
    PointsMultiplier,
    Reweight,
    StackingCounter,
)
from .rarity.table import RarityTable, RarityTier

logger = logging.getLogger(__name__)


class RandomSource(Protocol):
    def uniform(self, a: float, b: float) -> float: ...

    def choice(self, seq: Sequence): ...


@dataclass(frozen=True)
class ResolvedOutcome:
    """One resolved discovery.

    ``forced`` marks outcomes chosen by a ForceOutcome effect; ``fallback``
    marks the deterministic recovery used when reweighting emptied the pool.
    """

    tier: RarityTier
    tier_index: int
    points_awarded: int
    forced: bool = False
    fallback: bool = False

    @property
    def name(self) -> str:
        return self.tier.name


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3)."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


def weighted_draw(pool: Sequence[Tuple[RarityTier, float]], r: float) -> RarityTier:
    """Pick the first tier whose cumulative weight reaches ``r``.

    The boundary is closed: ``r`` equal to a cumulative sum selects the tier
    that sum was just reached on. Float overshoot falls back to the last
    entry.
    """
    cumulative = 0.0
    for tier, weight in pool:
        cumulative += weight
        if r <= cumulative:
            return tier
    return pool[-1][0]


class RewardEngine:
    """Resolves discovery events against a rarity table and the active modifiers.

    The engine holds no game state: an outcome is a function of the table,
    the ModifierSet, the timestamp and the random source. It never mutates
    ProgressState; folding outcomes is the ProgressTracker's job.
    """

    def __init__(self, table: RarityTable, rng: RandomSource) -> None:
        self.table = table
        self.rng = rng

    def resolve(self, modifiers: ModifierSet, now: int) -> ResolvedOutcome:
        """Resolve one discovery at ``now``.

        Steps: purge expired effects, honour a pending forced outcome,
        otherwise draw from the reweighted pool, then apply point
        multipliers. An empty pool is recovered locally with the table's
        fallback tier.
        """
        modifiers.purge_expired(now)

        tier: Optional[RarityTier] = None
        forced = False
        fallback = False

        force = modifiers.pending_force(now)
        if force is not None:
            tier = self._resolve_forced(force, modifiers)
            forced = tier is not None

        if tier is None:
            try:
                pool = self.table.resolve_weighted_pool(modifiers, now)
            except EmptyWeightPool as exc:
                tier = self.table.fallback_tier()
                fallback = True
                logger.warning("%s; falling back to '%s'", exc, tier.name)
            else:
                total = sum(w for _, w in pool)
                r = self.rng.uniform(0, total)
                tier = weighted_draw(pool, r)
                logger.debug("Weighted draw r=%.6f of %.6f -> %s", r, total, tier.name)

        multiplier = self._points_multiplier(modifiers, now)
        points = round_half_away(tier.points * multiplier)
        index = self.table.index_of(tier.name)
        return ResolvedOutcome(
            tier=tier,
            tier_index=index if index is not None else -1,
            points_awarded=points,
            forced=forced,
            fallback=fallback,
        )

    def _resolve_forced(self, force: ForceOutcome, modifiers: ModifierSet) -> Optional[RarityTier]:
        targets: List[RarityTier] = force.targets(self.table)
        remaining = modifiers.consume_force(force.effect_id)
        if not targets:
            logger.warning("Forced outcome '%s' matched no tiers; using weighted draw", force.effect_id)
            return None
        tier = self.rng.choice(targets)
        logger.debug("Forced outcome '%s' -> %s (%d uses left)", force.effect_id, tier.name, remaining)
        return tier

    def _points_multiplier(self, modifiers: ModifierSet, now: int) -> float:
        product = 1.0
        for mod in modifiers.active(now):
            product *= self._multiplier_of(mod)
        return product

    @staticmethod
    def _multiplier_of(mod: Modifier) -> float:
        # Every variant is listed so a new kind has to be placed deliberately.
        if isinstance(mod, PointsMultiplier):
            return mod.factor
        if isinstance(mod, (Reweight, ForceOutcome, FreezeClock, StackingCounter)):
            return 1.0
        logger.error("Ignoring unrecognised modifier type %s", type(mod).__name__)
        return 1.0


__all__ = ["RewardEngine", "ResolvedOutcome", "RandomSource", "weighted_draw", "round_half_away"]
