"""Services layer - Business logic

This module provides service classes for handling business logic.
Services are initialized with their dependencies and accessed through dependency injection.
"""

from .auth_service import AuthService
from .guess_service import GuessResult, GuessService, normalize_guess
from .pokeapi_client import PokeAPIClient
from .round_dispenser import RoundDispenser
from .round_refiller import RoundRefiller

__all__ = [
    "AuthService",
    "GuessResult",
    "GuessService",
    "PokeAPIClient",
    "RoundDispenser",
    "RoundRefiller",
    "normalize_guess",
]
