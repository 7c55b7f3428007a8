"""
Beyond Epic core package.

Headless domain logic for the Beyond Epic clicker:
- Rarity table and weighted reward resolution with timed modifiers
- Progress tracking, achievements and stats
- Shop upgrades and the auto-clicker timer
- Snapshot export/import

Presentation layers should create a GameSession and subscribe to its events.
"""
from .engine import ResolvedOutcome, RewardEngine
from .errors import (
    BeyondEpicError,
    EmptyWeightPool,
    InsufficientPoints,
    InvalidRarityTable,
    MalformedSnapshot,
    MaxStackReached,
    SessionBusy,
    UnknownEffect,
    UnknownShopItem,
)
from .modifiers import ModifierSet
from .progress import ProgressState, ProgressTracker
from .rarity import RarityTable, RarityTier, default_rarity_table
from .session import DiscoveryResult, GameSession, ImportResult
from .shop import PurchaseResult, Shop

__version__ = "0.1.0"

__all__ = [
    "BeyondEpicError",
    "DiscoveryResult",
    "EmptyWeightPool",
    "GameSession",
    "ImportResult",
    "InsufficientPoints",
    "InvalidRarityTable",
    "MalformedSnapshot",
    "MaxStackReached",
    "ModifierSet",
    "ProgressState",
    "ProgressTracker",
    "PurchaseResult",
    "RarityTable",
    "RarityTier",
    "ResolvedOutcome",
    "RewardEngine",
    "SessionBusy",
    "Shop",
    "UnknownEffect",
    "UnknownShopItem",
    "default_rarity_table",
]
