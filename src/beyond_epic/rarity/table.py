from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ..errors import EmptyWeightPool, InvalidRarityTable

if TYPE_CHECKING:  # pragma: no cover
    from ..modifiers import ModifierSet

logger = logging.getLogger(__name__)

TierPredicate = Callable[["RarityTier", int], bool]


@dataclass(frozen=True)
class RarityTier:
    """A named rarity level with a draw weight and a point value."""

    name: str
    weight: float
    points: int

    def __post_init__(self) -> None:
        if not self.name or not isinstance(self.name, str):
            raise InvalidRarityTable("RarityTier.name must be a non-empty string")
        if not isinstance(self.weight, (int, float)) or self.weight <= 0:
            raise InvalidRarityTable(f"Tier '{self.name}' must have a positive weight, got {self.weight!r}")
        if not isinstance(self.points, int) or isinstance(self.points, bool) or self.points < 0:
            raise InvalidRarityTable(f"Tier '{self.name}' must have non-negative integer points, got {self.points!r}")


class RarityTable:
    """Ordered, immutable catalog of rarity tiers.

    Order matters: a tier's position is its ``tierIndex`` in snapshots, it is
    the tie-break for the cumulative draw, and filters such as "Epic and
    above" are expressed against it.
    """

    def __init__(self, tiers: Sequence[RarityTier]) -> None:
        tiers = tuple(tiers)
        if not tiers:
            raise InvalidRarityTable("A rarity table needs at least one tier")
        index: Dict[str, int] = {}
        for i, tier in enumerate(tiers):
            if tier.name in index:
                raise InvalidRarityTable(f"Duplicate tier name: {tier.name}")
            index[tier.name] = i
        total = sum(t.weight for t in tiers)
        if total <= 0:
            raise InvalidRarityTable("Sum of tier weights must be positive")
        self._tiers: Tuple[RarityTier, ...] = tiers
        self._index = index
        self._total_weight = float(total)

    def __iter__(self) -> Iterator[RarityTier]:
        return iter(self._tiers)

    def __len__(self) -> int:
        return len(self._tiers)

    def __getitem__(self, i: int) -> RarityTier:
        return self._tiers[i]

    def __contains__(self, name: object) -> bool:
        return name in self._index

    @property
    def tiers(self) -> Tuple[RarityTier, ...]:
        return self._tiers

    @property
    def total_weight(self) -> float:
        return self._total_weight

    def get(self, name: str) -> Optional[RarityTier]:
        i = self._index.get(name)
        return self._tiers[i] if i is not None else None

    def index_of(self, name: str) -> Optional[int]:
        return self._index.get(name)

    def tiers_where(self, predicate: TierPredicate) -> List[RarityTier]:
        """Return tiers matching ``predicate(tier, index)`` in table order."""
        return [t for i, t in enumerate(self._tiers) if predicate(t, i)]

    def fallback_tier(self) -> RarityTier:
        """Lowest-index tier with a positive base weight.

        Construction guarantees every tier has a positive weight, so this is
        the first tier; the scan keeps the contract explicit.
        """
        for tier in self._tiers:
            if tier.weight > 0:
                return tier
        return self._tiers[0]

    def resolve_weighted_pool(self, modifiers: Optional["ModifierSet"], now: int) -> List[Tuple[RarityTier, float]]:
        """Apply every active Reweight and return the drawable ``(tier, weight)`` pairs.

        Tiers whose effective weight drops to zero or below are left out of
        the pool (they remain valid ForceOutcome targets).

        Raises:
            EmptyWeightPool: if no tier keeps a positive weight.
        """
        reweights = modifiers.active_reweights(now) if modifiers is not None else []
        pool: List[Tuple[RarityTier, float]] = []
        for i, tier in enumerate(self._tiers):
            weight = float(tier.weight)
            for rw in reweights:
                weight = rw.apply(tier, i, weight)
            if weight > 0:
                pool.append((tier, weight))
        if not pool:
            raise EmptyWeightPool(
                f"Reweighting by {[rw.effect_id for rw in reweights]} left no drawable tiers"
            )
        return pool


def rarity_table_from_entries(entries: Sequence[Dict]) -> RarityTable:
    """Build a table from ``{"name", "chance"|"weight", "points"}`` mappings."""
    tiers: List[RarityTier] = []
    for idx, raw in enumerate(entries):
        try:
            weight = raw["weight"] if "weight" in raw else raw["chance"]
            tiers.append(RarityTier(name=str(raw["name"]), weight=float(weight), points=int(raw["points"])))
        except KeyError as exc:
            raise InvalidRarityTable(f"Tier at index {idx} is missing {exc}") from exc
    return RarityTable(tiers)


__all__ = ["RarityTier", "RarityTable", "TierPredicate", "rarity_table_from_entries"]
