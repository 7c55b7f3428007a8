from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from .progress import ProgressState

logger = logging.getLogger(__name__)

PENDING_MESSAGE = "Leaderboard integration pending server hookup."


class LeaderboardService(ABC):
    """Source of the text shown when the player opens the leaderboard."""

    @abstractmethod
    def fetch_leaderboard(self, state: Optional[ProgressState] = None) -> str:
        raise NotImplementedError


class StubLeaderboard(LeaderboardService):
    def __init__(self, message: str = PENDING_MESSAGE) -> None:
        self.message = message

    def fetch_leaderboard(self, state: Optional[ProgressState] = None) -> str:
        logger.debug("Leaderboard requested; no server configured")
        return self.message


__all__ = ["LeaderboardService", "PENDING_MESSAGE", "StubLeaderboard"]
