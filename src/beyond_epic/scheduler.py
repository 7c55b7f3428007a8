from __future__ import annotations

import itertools
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .core.clock import Clock
from .modifiers import ModifierSet
from .settings import LoopSettings
from .shop import AUTO_CLICKER_ID

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class TimerHandle:
    """A repeating timer registered with a TimerService."""

    id: int
    period_ms: float
    next_due: float
    callback: Callable[[], None] = field(repr=False)
    cancelled: bool = False


class TimerService:
    """Single-timeline cooperative scheduler.

    ``run_due`` runs due callbacks one at a time in due-time order, ties broken
    by schedule order. A timer that fell far behind catches up at most
    ``max_catch_up`` cycles per call; the rest of its backlog is skipped so a
    long pause does not turn into a burst.
    """

    def __init__(self, max_catch_up: int = 10) -> None:
        if max_catch_up <= 0:
            raise ValueError("max_catch_up must be positive")
        self.max_catch_up = max_catch_up
        self._timers: Dict[int, TimerHandle] = {}
        self._ids = itertools.count(1)
        self._running = False

    def __len__(self) -> int:
        return len(self._timers)

    @property
    def running(self) -> bool:
        return self._running

    def schedule_interval(self, period_ms: float, callback: Callable[[], None], now: int) -> TimerHandle:
        if period_ms <= 0:
            raise ValueError("Timer period must be positive")
        handle = TimerHandle(id=next(self._ids), period_ms=float(period_ms), next_due=now + period_ms,
                             callback=callback)
        self._timers[handle.id] = handle
        logger.debug("Scheduled timer #%d every %.1f ms (first at %.0f)", handle.id, period_ms, handle.next_due)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None:
            return
        handle.cancelled = True
        if self._timers.pop(handle.id, None) is not None:
            logger.debug("Cancelled timer #%d", handle.id)

    def run_due(self, now: int) -> int:
        """Run every callback due at ``now``. Returns the number executed.

        A call made from inside a running callback does nothing, so callbacks
        never overlap.
        """
        if self._running:
            logger.debug("run_due(%s) ignored: already running", now)
            return 0
        self._running = True
        executed = 0
        fired: Dict[int, int] = {}
        try:
            while True:
                due: List[TimerHandle] = [
                    t for t in self._timers.values()
                    if t.next_due <= now and fired.get(t.id, 0) < self.max_catch_up
                ]
                if not due:
                    break
                timer = min(due, key=lambda t: (t.next_due, t.id))
                # Re-arm before running so a callback that cancels or
                # reschedules sees a consistent timer.
                timer.next_due += timer.period_ms
                fired[timer.id] = fired.get(timer.id, 0) + 1
                try:
                    timer.callback()
                except Exception:
                    logger.exception("Timer #%d callback failed", timer.id)
                executed += 1

            for timer in self._timers.values():
                if timer.next_due <= now:
                    missed = math.floor((now - timer.next_due) / timer.period_ms) + 1
                    timer.next_due += missed * timer.period_ms
                    logger.warning("Timer #%d skipped %d overdue cycles", timer.id, missed)
        finally:
            self._running = False
        return executed


class AutoTrigger:
    """Runs ``on_cycle`` periodically while the auto-clicker stack is non-empty.

    The interval comes from the stack (base interval divided by the count), so
    ``reschedule`` must be called on every count change. It cancels the live
    handle before arming the replacement, keeping at most one timer alive.
    """

    def __init__(
        self,
        timers: TimerService,
        modifiers: ModifierSet,
        on_cycle: Callable[[], None],
        effect_id: str = AUTO_CLICKER_ID,
    ) -> None:
        self.timers = timers
        self.modifiers = modifiers
        self.on_cycle = on_cycle
        self.effect_id = effect_id
        self.cycles = 0
        self._handle: Optional[TimerHandle] = None

    @property
    def handle(self) -> Optional[TimerHandle]:
        return self._handle

    @property
    def interval_ms(self) -> Optional[float]:
        return self.modifiers.trigger_interval(self.effect_id)

    def reschedule(self, now: int) -> Optional[TimerHandle]:
        self.stop()
        interval = self.interval_ms
        if interval is None:
            logger.debug("Auto-trigger idle (no %s owned)", self.effect_id)
            return None
        self._handle = self.timers.schedule_interval(interval, self._fire, now)
        logger.info("Auto-trigger every %.1f ms (%d owned)", interval, self.modifiers.stack_count(self.effect_id))
        return self._handle

    def stop(self) -> None:
        if self._handle is not None:
            self.timers.cancel(self._handle)
            self._handle = None

    def _fire(self) -> None:
        self.cycles += 1
        self.on_cycle()


class GameLoop:
    """Headless loop that drives the timer service from a clock.

    Each step runs due timers at ``clock.now()`` and then calls ``on_step``.
    With ``realtime`` set the loop sleeps to hold ``settings.tick_rate``;
    otherwise it runs as fast as possible (simulated clocks, tests).
    """

    def __init__(
        self,
        timers: TimerService,
        clock: Clock,
        settings: Optional[LoopSettings] = None,
        on_step: Optional[Callable[[int], None]] = None,
        realtime: bool = True,
    ) -> None:
        self.timers = timers
        self.clock = clock
        self.settings = settings or LoopSettings()
        self.on_step = on_step
        self.realtime = realtime
        self._running = False
        self._step = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def step(self) -> int:
        return self._step

    @property
    def step_ms(self) -> float:
        if self.settings.tick_rate and self.settings.tick_rate > 0:
            return 1000.0 / float(self.settings.tick_rate)
        return 0.0

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info("GameLoop stopped at step=%s", self._step)

    def update(self) -> int:
        """Perform a single step and return the number of timers executed."""
        executed = self.timers.run_due(self.clock.now())
        self._step += 1
        if self.on_step is not None:
            self.on_step(self._step)
        return executed

    def run(self, max_steps: Optional[int] = None) -> int:
        """Run until stopped or ``max_steps`` reached. Returns steps taken."""
        if max_steps is None and not self.realtime:
            raise ValueError("A simulated loop needs max_steps")
        self._running = True
        self._step = 0
        target_dt = self.step_ms / 1000.0 if self.realtime else 0.0
        logger.info("GameLoop started (tick_rate=%s, max_steps=%s)", self.settings.tick_rate, max_steps)

        while self._running:
            started = time.perf_counter()
            self.update()
            if max_steps is not None and self._step >= max_steps:
                self.stop()
                break
            if target_dt > 0:
                remaining = target_dt - (time.perf_counter() - started)
                if remaining > 0:
                    time.sleep(remaining)

        logger.info("Loop complete (steps=%d)", self._step)
        return self._step


__all__ = ["AutoTrigger", "GameLoop", "TimerHandle", "TimerService"]
