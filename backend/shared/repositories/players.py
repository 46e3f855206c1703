"""Repository for the players table."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.player import Player
from shared.repositories.scores import ledger_call

logger = logging.getLogger(__name__)

_PLAYER_COLUMNS = "player_id, nickname, created_at"


class PlayerRepository:
    """Pure SQL operations for players."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    @ledger_call
    async def insert(self, player_id: str, nickname: str) -> bool:
        """Register a player. Returns False if the player already existed."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "INSERT INTO players (player_id, nickname) VALUES ($1, $2) "
                "ON CONFLICT (player_id) DO NOTHING",
                player_id,
                nickname,
            )
            return result == "INSERT 0 1"

    @ledger_call
    async def get(self, player_id: str) -> Player | None:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_PLAYER_COLUMNS} FROM players WHERE player_id = $1",
                player_id,
            )
            if not row:
                return None
            return Player(**dict(row))

    @ledger_call
    async def delete(self, player_id: str) -> bool:
        """Delete a player and their score row."""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("DELETE FROM user_scores WHERE player_id = $1", player_id)
                result = await conn.execute("DELETE FROM players WHERE player_id = $1", player_id)
            return result == "DELETE 1"
