from .clock import Clock, ElapsedDisplay, ManualClock, format_elapsed
from .events import Event, EventBus, EventType
from .rng import RNG

__all__ = [
    "Clock",
    "ElapsedDisplay",
    "ManualClock",
    "format_elapsed",
    "Event",
    "EventBus",
    "EventType",
    "RNG",
]
