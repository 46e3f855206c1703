"""Data models for the players and user_scores tables."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Player:
    """Registered player, keyed by the identity provider's subject id."""

    player_id: str
    nickname: str
    created_at: datetime | None = None


@dataclass
class LeaderboardEntry:
    """One row of the top-N leaderboard."""

    nickname: str
    score: int
