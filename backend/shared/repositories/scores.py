"""Repository for the user_scores table (the score ledger)."""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.errors import LedgerUnavailable
from shared.models.player import LeaderboardEntry

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Leaderboard reads tolerate a little staleness; stale copy served if the DB is down
_leaderboard_cache = AsyncTTLCache(maxsize=8, ttl=30)


def ledger_call(func: F) -> F:
    """Translate database driver failures into ``LedgerUnavailable``."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, TimeoutError) as e:
            logger.error(f"Ledger operation {func.__qualname__} failed: {type(e).__name__}: {e}")
            raise LedgerUnavailable(f"Score store unavailable ({type(e).__name__})") from e

    return wrapper  # type: ignore[return-value]


class ScoreRepository:
    """Atomic counter operations on per-player scores."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @ledger_call
    async def increment(self, player_id: str, points: int) -> int:
        """Add *points* to the player's score in one statement. Returns the new total."""
        async with self.pool.acquire() as conn:
            score = await conn.fetchval(
                """
                INSERT INTO user_scores (player_id, score)
                VALUES ($1, $2)
                ON CONFLICT (player_id) DO UPDATE SET
                    score      = user_scores.score + EXCLUDED.score,
                    updated_at = NOW()
                RETURNING score
                """,
                player_id,
                points,
            )
        _leaderboard_cache.clear()
        return int(score)

    @ledger_call
    async def ensure(self, player_id: str) -> None:
        """Create a zero score row if the player has none."""
        async with self.pool.acquire() as conn:
            await conn.execute(
                "INSERT INTO user_scores (player_id) VALUES ($1) "
                "ON CONFLICT (player_id) DO NOTHING",
                player_id,
            )

    @ledger_call
    async def get_score(self, player_id: str) -> int:
        """Current score, 0 when the player has no row yet."""
        async with self.pool.acquire() as conn:
            score = await conn.fetchval(
                "SELECT score FROM user_scores WHERE player_id = $1",
                player_id,
            )
            return int(score or 0)

    @cached(
        cache=_leaderboard_cache,
        key_func=lambda self, limit=5: f"leaderboard:{limit}",
        retry=2,
        retry_on=(LedgerUnavailable,),
    )
    @ledger_call
    async def top(self, limit: int = 5) -> list[LeaderboardEntry]:
        """Highest scores first, joined with player nicknames."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT p.nickname, s.score
                FROM user_scores s
                JOIN players p ON p.player_id = s.player_id
                ORDER BY s.score DESC, p.nickname ASC
                LIMIT $1
                """,
                limit,
            )
            return [LeaderboardEntry(nickname=r["nickname"], score=r["score"]) for r in rows]
