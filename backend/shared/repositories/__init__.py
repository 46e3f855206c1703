"""Shared repository layer for the PokeGuess backend."""

from .players import PlayerRepository
from .round_queue import RoundQueueRepository
from .round_state import RoundStateRepository
from .scores import ScoreRepository

__all__ = [
    "PlayerRepository",
    "RoundQueueRepository",
    "RoundStateRepository",
    "ScoreRepository",
]
