from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, Union

from .achievements import Achievement, AchievementRegistry
from .core.clock import Clock, ElapsedDisplay, format_elapsed
from .core.events import Event, EventBus, EventType
from .core.rng import RNG
from .engine import RandomSource, ResolvedOutcome, RewardEngine
from .errors import MalformedSnapshot, SessionBusy
from .leaderboard import LeaderboardService, StubLeaderboard
from .modifiers import ModifierSet
from .persistence import codec, storage
from .progress import ProgressState, ProgressTracker
from .rarity.catalog import default_rarity_table
from .rarity.table import RarityTable
from .scheduler import AutoTrigger, TimerService
from .settings import Settings
from .shop import AUTO_CLICKER_ID, PurchaseResult, Shop, ShopListing
from .stats import StatsView, build_stats, finds_line

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = "Player"
IMPORT_FAILED_MESSAGE = "Import failed: invalid save data."
IMPORT_BUSY_MESSAGE = "Import failed: game is busy, try again."
REJECT_BUSY = "busy"


@dataclass(frozen=True)
class DiscoveryResult:
    outcome: ResolvedOutcome
    achievements: List[Achievement] = field(default_factory=list)
    auto: bool = False

    @property
    def message(self) -> str:
        return f"You found: {self.outcome.name} (+{self.outcome.points_awarded} pts)"


@dataclass(frozen=True)
class ImportResult:
    ok: bool
    message: str = ""


class GameSession:
    """Owns one player's progress and routes every user action through it.

    The presentation layer calls the ``on_*`` hooks and subscribes to events
    instead of touching state. Every state change (discoveries, auto-trigger
    cycles, purchases, settings edits, resets and imports) goes through one
    non-reentrant write guard. Events are only published once the guarded
    mutation has finished, so a subscriber that calls back into the session
    sees consistent state.
    """

    def __init__(
        self,
        table: Optional[RarityTable] = None,
        settings: Optional[Settings] = None,
        rng: Optional[RandomSource] = None,
        clock: Optional[Clock] = None,
        leaderboard: Optional[LeaderboardService] = None,
        achievements: Optional[AchievementRegistry] = None,
        state: Optional[ProgressState] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.table = table if table is not None else default_rarity_table()
        self.clock = clock or Clock()
        self.rng = rng or RNG()
        self.leaderboard = leaderboard or StubLeaderboard()
        self.bus = EventBus()

        self.engine = RewardEngine(self.table, self.rng)
        self.tracker = ProgressTracker(self.table, achievements)
        self.shop = Shop(self.table, self.settings.autoclicker)
        self.timers = TimerService(max_catch_up=self.settings.loop.max_catch_up)

        now = self.clock.now()
        self.state = state or ProgressState()
        if self.state.start_time is None:
            self.state.start_time = now
        self.modifiers = ModifierSet(registry=self.shop.registry)
        self.shop.prepare(self.modifiers)
        self.display = ElapsedDisplay(self.state.start_time)
        self.auto_trigger = AutoTrigger(self.timers, self.modifiers, self._auto_cycle)

        self._busy = False

    # ---------------------- guard ----------------------
    @property
    def busy(self) -> bool:
        return self._busy

    @contextmanager
    def _writing(self, action: str) -> Iterator[None]:
        if self._busy:
            raise SessionBusy(f"Cannot {action} while another update is in progress")
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _flush(self, events: List[Tuple[str, Dict[str, Any]]]) -> None:
        for name, payload in events:
            self.bus.publish(name, payload)

    def subscribe(self, event_name: str, callback: Callable[[Event], None]) -> None:
        self.bus.subscribe(event_name, callback)

    def unsubscribe(self, event_name: str, callback: Callable[[Event], None]) -> None:
        self.bus.unsubscribe(event_name, callback)

    # ---------------------- discovery ----------------------
    def _discover(self, now: int, auto: bool) -> DiscoveryResult:
        outcome = self.engine.resolve(self.modifiers, now)
        unlocked = self.tracker.fold(
            self.state, outcome, now, auto_clickers=self.modifiers.stack_count(AUTO_CLICKER_ID)
        )
        return DiscoveryResult(outcome=outcome, achievements=unlocked, auto=auto)

    def _discovery_events(self, result: DiscoveryResult) -> List[Tuple[str, Dict[str, Any]]]:
        events: List[Tuple[str, Dict[str, Any]]] = [(
            EventType.DISCOVERY_RESOLVED,
            {
                "tier": result.outcome.name,
                "tier_index": result.outcome.tier_index,
                "points": result.outcome.points_awarded,
                "forced": result.outcome.forced,
                "auto": result.auto,
            },
        )]
        for a in result.achievements:
            events.append((EventType.ACHIEVEMENT_UNLOCKED, {"id": a.id, "name": a.name}))
        return events

    def on_discover(self) -> DiscoveryResult:
        """Resolve one manual click and fold it into progress.

        Raises:
            SessionBusy: if called while another update is running.
        """
        with self._writing("discover"):
            result = self._discover(self.clock.now(), auto=False)
        self._flush(self._discovery_events(result))
        return result

    def _auto_cycle(self) -> None:
        try:
            with self._writing("run auto-click"):
                result = self._discover(self.clock.now(), auto=True)
        except SessionBusy:
            logger.warning("Skipped auto-click cycle: session busy")
            return
        self._flush(self._discovery_events(result))

    def tick(self) -> int:
        """Run auto-trigger cycles that are due. Returns how many ran."""
        return self.timers.run_due(self.clock.now())

    # ---------------------- shop ----------------------
    def on_open_shop(self) -> List[ShopListing]:
        return self.shop.listing(self.state, self.modifiers)

    def purchase(self, item_id: str) -> PurchaseResult:
        try:
            with self._writing("purchase"):
                now = self.clock.now()
                result = self.shop.purchase(item_id, self.state, self.modifiers, now)
                if result.accepted and item_id == AUTO_CLICKER_ID:
                    self.auto_trigger.reschedule(now)
        except SessionBusy as exc:
            logger.warning("%s", exc)
            return PurchaseResult(item_id, accepted=False, reason=REJECT_BUSY, message=str(exc))

        payload = {"item": result.item_id, "cost": result.cost, "reason": result.reason, "message": result.message}
        name = EventType.SHOP_PURCHASED if result.accepted else EventType.SHOP_REJECTED
        self._flush([(name, payload)])
        return result

    # ---------------------- leaderboard ----------------------
    def on_open_leaderboard(self) -> str:
        return self.leaderboard.fetch_leaderboard(self.state)

    # ---------------------- settings ----------------------
    def change_username(self, name: Optional[str]) -> bool:
        """Set a new username; blank input leaves the current one in place."""
        if not name or not name.strip():
            return False
        with self._writing("change username"):
            self.state.username = name.strip()
        logger.info("Username set to %s", self.state.username)
        return True

    def ensure_username(self, name: Optional[str] = None) -> str:
        """Assign a username if none is set yet, defaulting to "Player"."""
        if not self.state.username:
            if not self.change_username(name):
                with self._writing("set username"):
                    self.state.username = DEFAULT_USERNAME
        return self.state.username

    def toggle_music(self) -> bool:
        with self._writing("toggle music"):
            self.state.settings.music_on = not self.state.settings.music_on
        return self.state.settings.music_on

    def reset(self) -> None:
        """Zero all progress and effects, keeping username and start time."""
        with self._writing("reset"):
            now = self.clock.now()
            self.tracker.reset(self.state, now)
            self.modifiers.clear()
            self.auto_trigger.reschedule(now)
            self.display.reset(self.state.start_time)
        self._flush([(EventType.PROGRESS_RESET, {"username": self.state.username})])

    # ---------------------- display ----------------------
    def elapsed_ms(self) -> int:
        start = self.state.start_time if self.state.start_time is not None else self.clock.now()
        return self.display.elapsed_ms(start, self.modifiers.time_frozen_until, self.clock.now())

    def elapsed_display(self) -> str:
        return format_elapsed(self.elapsed_ms())

    def stats(self) -> StatsView:
        return build_stats(self.state, self.modifiers, self.table, self.settings.display, self.elapsed_display())

    def finds_line(self) -> str:
        return finds_line(self.state, self.table)

    # ---------------------- persistence ----------------------
    def export_snapshot(self) -> str:
        return codec.serialize(self.state, self.modifiers)

    def export_to_file(self, directory: Optional[Union[str, Path]] = None) -> Path:
        p = self.settings.persistence
        return storage.export_snapshot(
            self.export_snapshot(), directory, file_name=p.export_file_name, app_name=p.app_name
        )

    def import_snapshot(self, text: str) -> ImportResult:
        """Replace progress with a snapshot. On failure nothing changes."""
        try:
            with self._writing("import"):
                now = self.clock.now()
                state, modifiers = codec.deserialize(
                    text,
                    self.shop.registry,
                    now,
                    fallback_username=self.state.username,
                    fallback_start_time=self.state.start_time,
                    auto_settings=self.settings.autoclicker,
                )
                self._install(state, modifiers, now)
        except SessionBusy as exc:
            logger.warning("Rejected import: %s", exc)
            result = ImportResult(ok=False, message=IMPORT_BUSY_MESSAGE)
            self._flush([(EventType.SNAPSHOT_IMPORT_FAILED, {"message": result.message})])
            return result
        except MalformedSnapshot as exc:
            logger.warning("Rejected import: %s", exc)
            result = ImportResult(ok=False, message=IMPORT_FAILED_MESSAGE)
            self._flush([(EventType.SNAPSHOT_IMPORT_FAILED, {"message": result.message})])
            return result

        logger.info("Imported save for %s (%d clicks)", self.state.username, self.state.total_discoveries)
        self._flush([(EventType.SNAPSHOT_IMPORTED, self.state.summary())])
        return ImportResult(ok=True)

    def import_from_file(self, path: Union[str, Path]) -> ImportResult:
        try:
            text = storage.read_snapshot(path)
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read save file %s: %s", path, exc)
            self._flush([(EventType.SNAPSHOT_IMPORT_FAILED, {"message": IMPORT_FAILED_MESSAGE})])
            return ImportResult(ok=False, message=IMPORT_FAILED_MESSAGE)
        return self.import_snapshot(text)

    def _install(self, state: ProgressState, modifiers: ModifierSet, now: int) -> None:
        self.state = state
        self.modifiers = modifiers
        self.shop.prepare(modifiers)
        self.auto_trigger.modifiers = modifiers
        self.auto_trigger.reschedule(now)
        self.display = ElapsedDisplay()


__all__ = [
    "DEFAULT_USERNAME",
    "DiscoveryResult",
    "GameSession",
    "IMPORT_FAILED_MESSAGE",
    "ImportResult",
]
