from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from .errors import InsufficientPoints, MaxStackReached, UnknownShopItem
from .modifiers import (
    EffectDefinition,
    EffectRegistry,
    ForceOutcome,
    FreezeClock,
    Modifier,
    ModifierSet,
    PointsAtLeast,
    PointsMultiplier,
    exclude_tier,
    restrict_from_index,
)
from .progress import ProgressState
from .rarity.table import RarityTable
from .settings import AutoClickerSettings

logger = logging.getLogger(__name__)

AUTO_CLICKER_ID = "autoClicker"

SECOND_MS = 1000
HOUR_MS = 60 * 60 * SECOND_MS

REJECT_INSUFFICIENT_POINTS = "insufficient_points"
REJECT_MAX_STACK = "max_stack"
REJECT_UNKNOWN_ITEM = "unknown_item"


@dataclass(frozen=True)
class ShopItem:
    """Static metadata for an item sold by the shop.

    Stacking items (the auto-clicker) double in price with every unit owned.
    """

    id: str
    name: str
    description: str
    cost: int
    duration_ms: Optional[int] = None
    stacking: bool = False

    def cost_for(self, owned: int) -> int:
        if self.stacking:
            return self.cost * (2 ** owned)
        return self.cost


@dataclass(frozen=True)
class ShopListing:
    item: ShopItem
    cost: int
    affordable: bool
    owned: int = 0
    maxed: bool = False


@dataclass(frozen=True)
class PurchaseResult:
    """Outcome of a purchase attempt.

    Rejections are results, not exceptions. ``message`` is empty for silent
    rejections (not enough points) and carries a player-facing notice
    otherwise.
    """

    item_id: str
    accepted: bool
    cost: int = 0
    reason: Optional[str] = None
    message: str = ""
    modifier: Optional[Modifier] = None


def default_catalog(auto: Optional[AutoClickerSettings] = None) -> List[ShopItem]:
    auto = auto or AutoClickerSettings()
    interval_s = auto.base_interval_ms / SECOND_MS
    return [
        ShopItem(AUTO_CLICKER_ID, "Auto-Clicker",
                 f"Automatically clicks every {interval_s:g}s. Stacks up to {auto.cap}, speeding up with each one.",
                 cost=auto.base_cost, stacking=True),
        ShopItem("doublePoints", "Double Points", "Doubles all points for 30 seconds.",
                 cost=200, duration_ms=30 * SECOND_MS),
        ShopItem("triplePoints", "Triple Points", "Triples all points for 30 seconds.",
                 cost=500, duration_ms=30 * SECOND_MS),
        ShopItem("goldenHour", "Golden Hour", "Guarantees Epic+ for 10 seconds.",
                 cost=2000, duration_ms=10 * SECOND_MS),
        ShopItem("luckBoost", "Luck Boost", "Removes Very Common for 60 seconds.",
                 cost=250, duration_ms=60 * SECOND_MS),
        ShopItem("luckyDay", "Lucky Day", "Removes Very Common for 24 hours.",
                 cost=5000, duration_ms=24 * HOUR_MS),
        ShopItem("timeFreeze", "Time Freeze", "Freezes the timer for 30 seconds.",
                 cost=100, duration_ms=30 * SECOND_MS),
        ShopItem("luckyClick", "Lucky Click", "Guarantees Legendary+ on next click.",
                 cost=500),
    ]


def build_effect_registry(table: RarityTable, catalog: Optional[List[ShopItem]] = None) -> EffectRegistry:
    """Map every timed or one-shot shop item to the modifier it activates."""
    epic_index = table.index_of("Epic") or 0
    factories: Dict[str, Callable[[str, Optional[int]], Modifier]] = {
        "doublePoints": lambda eid, exp: PointsMultiplier(eid, exp, factor=2.0),
        "triplePoints": lambda eid, exp: PointsMultiplier(eid, exp, factor=3.0),
        "goldenHour": lambda eid, exp: restrict_from_index(eid, epic_index, exp),
        "luckBoost": lambda eid, exp: exclude_tier(eid, "Very Common", exp),
        "luckyDay": lambda eid, exp: exclude_tier(eid, "Very Common", exp),
        "timeFreeze": lambda eid, exp: FreezeClock(eid, exp),
        "luckyClick": lambda eid, exp: ForceOutcome(eid, exp, selector=PointsAtLeast(40), uses_remaining=1),
    }
    registry = EffectRegistry()
    for item in catalog or default_catalog():
        if item.stacking:
            continue
        factory = factories.get(item.id)
        if factory is None:
            raise UnknownShopItem(f"No effect defined for shop item '{item.id}'")
        registry.register(EffectDefinition(effect_id=item.id, factory=factory, duration_ms=item.duration_ms))
    return registry


class Shop:
    """Sells upgrades for points and turns purchases into active modifiers.

    Usage:
        shop = Shop(table)
        shop.prepare(modifiers)
        result = shop.purchase("doublePoints", state, modifiers, now)
    """

    def __init__(
        self,
        table: RarityTable,
        auto_settings: Optional[AutoClickerSettings] = None,
        catalog: Optional[List[ShopItem]] = None,
    ) -> None:
        self.auto_settings = auto_settings or AutoClickerSettings()
        items = catalog or default_catalog(self.auto_settings)
        self._items: Dict[str, ShopItem] = {i.id: i for i in items}
        self.registry = build_effect_registry(table, items)

    @property
    def items(self) -> List[ShopItem]:
        return list(self._items.values())

    def get_item(self, item_id: str) -> ShopItem:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise UnknownShopItem(f"Item not found: {item_id}") from exc

    def prepare(self, modifiers: ModifierSet) -> None:
        """Make sure the ModifierSet carries the stacking counters the shop sells."""
        for item in self._items.values():
            if item.stacking:
                modifiers.ensure_stack(item.id, cap=self.auto_settings.cap,
                                       base_interval_ms=self.auto_settings.base_interval_ms)

    def listing(self, state: ProgressState, modifiers: ModifierSet) -> List[ShopListing]:
        result: List[ShopListing] = []
        for item in self._items.values():
            owned = modifiers.stack_count(item.id) if item.stacking else 0
            cost = item.cost_for(owned)
            maxed = item.stacking and owned >= self.auto_settings.cap
            result.append(ShopListing(item=item, cost=cost, affordable=state.total_points >= cost and not maxed,
                                      owned=owned, maxed=maxed))
        return result

    def purchase(self, item_id: str, state: ProgressState, modifiers: ModifierSet, now: int) -> PurchaseResult:
        """Attempt to buy ``item_id``.

        - Unknown ids and maxed stacks are rejected with a notice.
        - Not enough points is a silent rejection with no state change.
        - Otherwise points are deducted and the effect is activated (a
          re-purchase of a running effect restarts its timer).
        """
        item = self._items.get(item_id)
        if item is None:
            logger.warning("Rejected purchase of unknown item %s", item_id)
            return PurchaseResult(item_id, accepted=False, reason=REJECT_UNKNOWN_ITEM,
                                  message=f"Unknown item: {item_id}")

        owned = 0
        if item.stacking:
            self.prepare(modifiers)
            owned = modifiers.stack_count(item.id)
        cost = item.cost_for(owned)

        try:
            if item.stacking and owned >= self.auto_settings.cap:
                raise MaxStackReached(f"{item.name} is already at {owned}/{self.auto_settings.cap}")
            state.spend_points(cost)
        except MaxStackReached as exc:
            logger.info("Rejected purchase of %s: %s", item.id, exc)
            return PurchaseResult(item.id, accepted=False, cost=cost, reason=REJECT_MAX_STACK,
                                  message=f"Max {item.name}s reached!")
        except InsufficientPoints as exc:
            logger.debug("Rejected purchase of %s: %s", item.id, exc)
            return PurchaseResult(item.id, accepted=False, cost=cost, reason=REJECT_INSUFFICIENT_POINTS)

        modifier: Optional[Modifier]
        if item.stacking:
            modifiers.tick_stack(item.id)
            modifier = modifiers.get(item.id)
        else:
            modifier = modifiers.activate_effect(item.id, now)
        logger.info("Purchase complete: %s for %d points (remaining: %d)", item.name, cost, state.total_points)
        return PurchaseResult(item.id, accepted=True, cost=cost, modifier=modifier)


__all__ = [
    "AUTO_CLICKER_ID",
    "PurchaseResult",
    "Shop",
    "ShopItem",
    "ShopListing",
    "build_effect_registry",
    "default_catalog",
    "REJECT_INSUFFICIENT_POINTS",
    "REJECT_MAX_STACK",
    "REJECT_UNKNOWN_ITEM",
]
