"""Repository for per-player round state (player -> expected answer).

State is a plain Redis string per player with no expiry: starting a round
overwrites any unresolved one, a correct guess removes it.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from shared.repositories._redis import KEY_PREFIX, cache_call

logger = logging.getLogger(__name__)

DEFAULT_STATE_PREFIX = f"{KEY_PREFIX}:round"


class RoundStateRepository:
    """Get / set / claim operations on a player's active round."""

    def __init__(self, redis: Redis, prefix: str = DEFAULT_STATE_PREFIX) -> None:
        self.redis = redis
        self.prefix = prefix

    def _key(self, player_id: str) -> str:
        return f"{self.prefix}:{player_id}"

    @cache_call
    async def start(self, player_id: str, expected: str) -> None:
        """Set the expected answer, discarding any unresolved round."""
        await self.redis.set(self._key(player_id), expected)

    @cache_call
    async def get(self, player_id: str) -> str | None:
        """Expected answer for the player's active round, if any."""
        return await self.redis.get(self._key(player_id))

    @cache_call
    async def claim(self, player_id: str) -> str | None:
        """Atomically take the active round (GETDEL).

        Only one caller can claim a given round; concurrent claims see None.
        """
        return await self.redis.getdel(self._key(player_id))

    @cache_call
    async def restore(self, player_id: str, expected: str) -> bool:
        """Put a claimed round back unless a newer round was started meanwhile."""
        restored = await self.redis.set(self._key(player_id), expected, nx=True)
        return bool(restored)

    @cache_call
    async def clear(self, player_id: str) -> None:
        await self.redis.delete(self._key(player_id))
