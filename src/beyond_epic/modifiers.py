from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, ClassVar, Dict, Iterator, List, Optional, Type, TypeVar

from .errors import MaxStackReached, UnknownEffect
from .rarity.table import RarityTable, RarityTier, TierPredicate

logger = logging.getLogger(__name__)

M = TypeVar("M", bound="Modifier")


# ---------------------- Tier predicates ----------------------
# Small value objects rather than lambdas so modifiers compare and repr cleanly.

@dataclass(frozen=True)
class NameIs:
    name: str

    def __call__(self, tier: RarityTier, index: int) -> bool:
        return tier.name == self.name


@dataclass(frozen=True)
class IndexBelow:
    index: int

    def __call__(self, tier: RarityTier, index: int) -> bool:
        return index < self.index


@dataclass(frozen=True)
class PointsAtLeast:
    points: int

    def __call__(self, tier: RarityTier, index: int) -> bool:
        return tier.points >= self.points


def _match_nothing(tier: RarityTier, index: int) -> bool:
    return False


# ---------------------- Modifier variants ----------------------

@dataclass(frozen=True)
class Modifier:
    """Base of the modifier sum type.

    ``expires_at`` is an absolute epoch-ms timestamp; ``None`` marks one-shot
    or permanent effects that are never purged by time.
    """

    effect_id: str
    expires_at: Optional[int] = None

    stackable: ClassVar[bool] = False

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and self.expires_at <= now


@dataclass(frozen=True)
class Reweight(Modifier):
    """Multiply the weight of every tier matching ``predicate`` by ``multiplier``."""

    predicate: TierPredicate = _match_nothing
    multiplier: float = 0.0

    def apply(self, tier: RarityTier, index: int, weight: float) -> float:
        if self.predicate(tier, index):
            return weight * self.multiplier
        return weight


@dataclass(frozen=True)
class ForceOutcome(Modifier):
    """Bypass the weighted draw for the next ``uses_remaining`` discoveries."""

    selector: TierPredicate = _match_nothing
    uses_remaining: int = 1

    def targets(self, table: RarityTable) -> List[RarityTier]:
        return table.tiers_where(self.selector)


@dataclass(frozen=True)
class FreezeClock(Modifier):
    """Hold the displayed elapsed time until ``expires_at``."""

    @property
    def until(self) -> int:
        return self.expires_at or 0


@dataclass(frozen=True)
class PointsMultiplier(Modifier):
    factor: float = 1.0


@dataclass(frozen=True)
class StackingCounter(Modifier):
    """Permanent, capped upgrade level (owned auto-clickers).

    Each unit shortens the derived trigger interval: ``base / count``.
    """

    count: int = 0
    cap: int = 10
    base_interval_ms: float = 2000.0

    stackable: ClassVar[bool] = True

    def is_expired(self, now: int) -> bool:
        return False

    @property
    def interval_ms(self) -> Optional[float]:
        if self.count <= 0:
            return None
        return self.base_interval_ms / min(self.count, self.cap)


def exclude_tier(effect_id: str, name: str, expires_at: Optional[int] = None) -> Reweight:
    return Reweight(effect_id=effect_id, expires_at=expires_at, predicate=NameIs(name), multiplier=0.0)


def restrict_from_index(effect_id: str, min_index: int, expires_at: Optional[int] = None) -> Reweight:
    """Zero out every tier before ``min_index``, leaving that tier and later ones."""
    return Reweight(effect_id=effect_id, expires_at=expires_at, predicate=IndexBelow(min_index), multiplier=0.0)


# ---------------------- Effect registry ----------------------

ModifierFactory = Callable[[str, Optional[int]], Modifier]


@dataclass(frozen=True)
class EffectDefinition:
    """How to build the modifier behind an effect id.

    ``duration_ms`` of ``None`` means the effect has no expiry (one-shot).
    """

    effect_id: str
    factory: ModifierFactory
    duration_ms: Optional[int] = None

    def build(self, now: int) -> Modifier:
        expires_at = now + self.duration_ms if self.duration_ms is not None else None
        return self.factory(self.effect_id, expires_at)


class EffectRegistry:
    """Maps effect ids to their definitions.

    Snapshots only persist ``{effect_id: {expiresAt}}``, so restoring an
    effect needs the registry to rebuild the predicate/factor behind it.
    """

    def __init__(self, definitions: Optional[List[EffectDefinition]] = None) -> None:
        self._defs: Dict[str, EffectDefinition] = {}
        for d in definitions or []:
            self.register(d)

    def register(self, definition: EffectDefinition) -> None:
        if definition.effect_id in self._defs:
            raise ValueError(f"Duplicate effect id: {definition.effect_id}")
        self._defs[definition.effect_id] = definition

    def __contains__(self, effect_id: object) -> bool:
        return effect_id in self._defs

    def get(self, effect_id: str) -> EffectDefinition:
        try:
            return self._defs[effect_id]
        except KeyError as exc:
            raise UnknownEffect(f"No effect registered for id '{effect_id}'") from exc

    def build(self, effect_id: str, now: int) -> Modifier:
        return self.get(effect_id).build(now)

    def restore(self, effect_id: str, expires_at: Optional[int], uses_remaining: Optional[int] = None) -> Modifier:
        """Rebuild a persisted effect with its original absolute expiry."""
        modifier = self.get(effect_id).factory(effect_id, expires_at)
        if isinstance(modifier, ForceOutcome) and uses_remaining is not None:
            modifier = replace(modifier, uses_remaining=uses_remaining)
        return modifier

    def ids(self) -> List[str]:
        return list(self._defs)


# ---------------------- ModifierSet ----------------------

@dataclass
class ModifierSet:
    """Active effects plus permanent stacking counters, keyed by effect id.

    At most one instance per effect id exists. Re-activating a non-stacking
    effect replaces the entry, which resets its expiry without compounding
    its magnitude.
    """

    registry: Optional[EffectRegistry] = None
    time_frozen_until: int = 0
    _mods: Dict[str, Modifier] = field(default_factory=dict, init=False, repr=False)

    def __iter__(self) -> Iterator[Modifier]:
        return iter(list(self._mods.values()))

    def __len__(self) -> int:
        return len(self._mods)

    def __contains__(self, effect_id: object) -> bool:
        return effect_id in self._mods

    def get(self, effect_id: str) -> Optional[Modifier]:
        return self._mods.get(effect_id)

    # -------- activation --------
    def activate(self, modifier: Modifier) -> Modifier:
        if modifier.stackable:
            raise ValueError("Stacking counters are managed with ensure_stack/tick_stack")
        previous = self._mods.get(modifier.effect_id)
        self._mods[modifier.effect_id] = modifier
        if isinstance(modifier, FreezeClock):
            self.time_frozen_until = modifier.until
        if previous is not None:
            logger.debug(
                "Refreshed effect %s: expiry %s -> %s", modifier.effect_id, previous.expires_at, modifier.expires_at
            )
        else:
            logger.debug("Activated effect %s (expires_at=%s)", modifier.effect_id, modifier.expires_at)
        return modifier

    def activate_effect(self, effect_id: str, now: int) -> Modifier:
        if self.registry is None:
            raise UnknownEffect(f"No effect registry available to build '{effect_id}'")
        return self.activate(self.registry.build(effect_id, now))

    # -------- queries --------
    def is_active(self, effect_id: str, now: int) -> bool:
        mod = self._mods.get(effect_id)
        if mod is None or mod.is_expired(now):
            return False
        if isinstance(mod, StackingCounter):
            return mod.count > 0
        if isinstance(mod, ForceOutcome):
            return mod.uses_remaining > 0
        return True

    def active(self, now: int, kind: Optional[Type[M]] = None) -> List[M]:
        return [
            m for m in self._mods.values()
            if not m.is_expired(now) and (kind is None or isinstance(m, kind))
        ]

    def active_reweights(self, now: int) -> List[Reweight]:
        return self.active(now, Reweight)

    def pending_force(self, now: int) -> Optional[ForceOutcome]:
        for m in self.active(now, ForceOutcome):
            if m.uses_remaining > 0:
                return m
        return None

    # -------- mutation --------
    def consume_force(self, effect_id: str) -> int:
        """Use up one forced outcome; a spent effect is removed. Returns uses left."""
        mod = self._mods.get(effect_id)
        if not isinstance(mod, ForceOutcome):
            raise UnknownEffect(f"'{effect_id}' is not an active force-outcome effect")
        remaining = max(0, mod.uses_remaining - 1)
        if remaining == 0:
            del self._mods[effect_id]
        else:
            self._mods[effect_id] = replace(mod, uses_remaining=remaining)
        return remaining

    def purge_expired(self, now: int) -> List[str]:
        expired = [eid for eid, m in self._mods.items() if m.is_expired(now)]
        for eid in expired:
            del self._mods[eid]
        if expired:
            logger.debug("Purged expired effects at %s: %s", now, expired)
        return expired

    def ensure_stack(self, effect_id: str, cap: int, base_interval_ms: float) -> StackingCounter:
        mod = self._mods.get(effect_id)
        if isinstance(mod, StackingCounter):
            return mod
        if cap <= 0:
            raise ValueError("Stack cap must be positive")
        counter = StackingCounter(effect_id=effect_id, count=0, cap=cap, base_interval_ms=base_interval_ms)
        self._mods[effect_id] = counter
        return counter

    def _stack(self, effect_id: str) -> StackingCounter:
        mod = self._mods.get(effect_id)
        if not isinstance(mod, StackingCounter):
            raise UnknownEffect(f"No stacking counter registered for '{effect_id}'")
        return mod

    def tick_stack(self, effect_id: str) -> int:
        """Add one unit to a stacking counter and return the new count.

        Raises:
            MaxStackReached: if the counter is already at its cap.
        """
        counter = self._stack(effect_id)
        if counter.count >= counter.cap:
            raise MaxStackReached(f"'{effect_id}' is already at its cap of {counter.cap}")
        counter = replace(counter, count=counter.count + 1)
        self._mods[effect_id] = counter
        logger.debug("Stack %s -> %d (interval %.1f ms)", effect_id, counter.count, counter.interval_ms)
        return counter.count

    def set_stack_count(self, effect_id: str, count: int) -> int:
        counter = self._stack(effect_id)
        clamped = max(0, min(int(count), counter.cap))
        if clamped != count:
            logger.warning("Clamped stack %s from %s to %d", effect_id, count, clamped)
        self._mods[effect_id] = replace(counter, count=clamped)
        return clamped

    def stack_count(self, effect_id: str) -> int:
        mod = self._mods.get(effect_id)
        return mod.count if isinstance(mod, StackingCounter) else 0

    def trigger_interval(self, effect_id: str) -> Optional[float]:
        mod = self._mods.get(effect_id)
        return mod.interval_ms if isinstance(mod, StackingCounter) else None

    def clear(self) -> None:
        """Drop timed effects, zero stacking counters and unfreeze the clock."""
        for eid, m in list(self._mods.items()):
            if isinstance(m, StackingCounter):
                self._mods[eid] = replace(m, count=0)
            else:
                del self._mods[eid]
        self.time_frozen_until = 0


__all__ = [
    "Modifier",
    "Reweight",
    "ForceOutcome",
    "FreezeClock",
    "PointsMultiplier",
    "StackingCounter",
    "NameIs",
    "IndexBelow",
    "PointsAtLeast",
    "exclude_tier",
    "restrict_from_index",
    "EffectDefinition",
    "EffectRegistry",
    "ModifierSet",
]
