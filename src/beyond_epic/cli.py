from __future__ import annotations

import argparse
import logging
import math
from pathlib import Path
from typing import List, Optional

from .core.clock import Clock, ManualClock
from .core.rng import RNG
from .logging_config import configure_logging
from .scheduler import GameLoop
from .session import GameSession
from .settings import Settings

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="beyond-epic",
        description="Beyond Epic - headless clicker runner: click, shop, idle, then print the stats.",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible discoveries.")
    parser.add_argument("--clicks", type=int, default=0, help="Number of manual discoveries to make.")
    parser.add_argument(
        "--buy",
        dest="buy",
        action="append",
        default=[],
        metavar="ITEM",
        help="Shop item id to buy after clicking (repeatable, bought in order).",
    )
    parser.add_argument(
        "--idle-ms",
        type=int,
        default=0,
        help="Simulated milliseconds to let auto-clickers run after shopping.",
    )
    parser.add_argument("--username", default=None, help="Username for a new save.")
    parser.add_argument("--import", dest="import_path", type=Path, default=None, help="Save file to load first.")
    parser.add_argument(
        "--export",
        nargs="?",
        const="",
        default=None,
        metavar="DIR",
        help="Write beyond-epic-save.json at the end (to DIR, or the user data directory).",
    )
    parser.add_argument(
        "--settings",
        dest="settings_path",
        type=Path,
        default=None,
        help="Path to a user settings YAML file to load/override defaults.",
    )
    parser.add_argument("--debug", action="store_true", help="Enable verbose debug logging.")
    args = parser.parse_args(argv)
    if args.clicks < 0:
        parser.error("--clicks must not be negative")
    if args.idle_ms < 0:
        parser.error("--idle-ms must not be negative")
    return args


def _simulate(loop: GameLoop, clock: ManualClock, steps: int, session: Optional[GameSession] = None) -> None:
    if steps <= 0:
        return
    step_ms = loop.step_ms or 50.0

    def on_step(step: int) -> None:
        if session is not None:
            result = session.on_discover()
            logger.debug("%s", result.message)
        clock.advance(int(step_ms))

    loop.on_step = on_step
    loop.run(max_steps=steps)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=logging.DEBUG if args.debug else None)

    settings = Settings.load(user_path=args.settings_path)
    clock = ManualClock(start_ms=Clock().now())
    session = GameSession(settings=settings, rng=RNG(seed=args.seed), clock=clock)

    if args.import_path is not None:
        result = session.import_from_file(args.import_path)
        if not result.ok:
            print(result.message)
            return 1
    session.ensure_username(args.username)

    loop = GameLoop(session.timers, clock, settings.loop, realtime=False)
    _simulate(loop, clock, args.clicks, session)

    for item_id in args.buy:
        purchase = session.purchase(item_id)
        if purchase.accepted:
            print(f"Bought {item_id} for {purchase.cost} points")
        else:
            print(purchase.message or f"Could not buy {item_id} ({purchase.reason})")

    if args.idle_ms:
        _simulate(loop, clock, math.ceil(args.idle_ms / (loop.step_ms or 50.0)))

    print(f"Player: {session.state.username}")
    for line in session.stats().lines():
        print(line)
    print(f"Finds: {session.finds_line()}")

    if args.export is not None:
        path = session.export_to_file(args.export or None)
        print(f"Saved to {path}")
    return 0
