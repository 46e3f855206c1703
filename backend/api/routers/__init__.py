"""API Routers package

This package contains all API route handlers.
Routers are organized by feature domain.
"""

from . import game_router, leaderboard_router, users_router

__all__ = [
    "game_router",
    "leaderboard_router",
    "users_router",
]
