from __future__ import annotations

import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class Clock:
    """Epoch-millisecond time source.

    Modifier expiry and auto-trigger scheduling read this clock directly, so a
    Time Freeze never slows them down; only ElapsedDisplay honours freezes.
    """

    def __init__(self, time_source: Optional[Callable[[], int]] = None) -> None:
        self._time_source = time_source or _wall_clock_ms

    def now(self) -> int:
        return int(self._time_source())


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and headless replays."""

    def __init__(self, start_ms: int = 0) -> None:
        self._now = int(start_ms)
        super().__init__(time_source=lambda: self._now)

    def set(self, now_ms: int) -> None:
        self._now = int(now_ms)

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += int(delta_ms)
        return self._now


class ElapsedDisplay:
    """Tracks the elapsed time shown to the player.

    While ``now < frozen_until`` the displayed value holds at the last tick
    taken before the freeze began; once the freeze lapses it jumps to the real
    elapsed time again.
    """

    def __init__(self, last_tick: Optional[int] = None) -> None:
        self.last_tick = last_tick

    def elapsed_ms(self, start_time: int, frozen_until: int, now: int) -> int:
        if self.last_tick is None:
            self.last_tick = start_time
        if now < frozen_until:
            return max(0, self.last_tick - start_time)
        self.last_tick = now
        return max(0, now - start_time)

    def reset(self, start_time: int) -> None:
        self.last_tick = start_time


def format_elapsed(ms: int) -> str:
    return f"{ms / 1000:.1f}s"


__all__ = ["Clock", "ManualClock", "ElapsedDisplay", "format_elapsed"]
