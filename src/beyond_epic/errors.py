class BeyondEpicError(Exception):
    """Base error for Beyond Epic domain exceptions."""


class InvalidRarityTable(BeyondEpicError):
    """Raised when a rarity table violates its invariants (empty, duplicate names, bad weights)."""


class EmptyWeightPool(BeyondEpicError):
    """Raised when reweighting leaves no tier with a positive weight to draw from."""


class MalformedSnapshot(BeyondEpicError):
    """Raised when snapshot text is not well-formed structured data."""


class MaxStackReached(BeyondEpicError):
    """Raised when a stacking upgrade is already at its cap."""


class InsufficientPoints(BeyondEpicError):
    """Raised when a purchase costs more points than the player has."""


class UnknownShopItem(BeyondEpicError):
    """Raised when a shop item id is not in the catalog."""


class UnknownEffect(BeyondEpicError):
    """Raised when an effect id has no registered modifier factory."""


class SessionBusy(BeyondEpicError):
    """Raised when a state mutation is attempted while another one is in progress."""
