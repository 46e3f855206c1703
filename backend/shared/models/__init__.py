"""Shared data models for the PokeGuess backend."""

from .player import LeaderboardEntry, Player
from .round import RoundRecord

__all__ = [
    "LeaderboardEntry",
    "Player",
    "RoundRecord",
]
