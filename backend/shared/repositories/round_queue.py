"""Repository for the shared FIFO buffer of ready-to-serve rounds.

The queue is a single Redis list shared by every API process. Each list
operation is atomic on the Redis side, so concurrent pops never hand the same
record to two callers.
"""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from shared.models.round import RoundRecord
from shared.repositories._redis import KEY_PREFIX, cache_call

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_KEY = f"{KEY_PREFIX}:round_queue"


class RoundQueueRepository:
    """Push-to-tail / pop-from-head operations on the round queue."""

    def __init__(self, redis: Redis, key: str = DEFAULT_QUEUE_KEY) -> None:
        self.redis = redis
        self.key = key

    @cache_call
    async def push(self, record: RoundRecord) -> int:
        """Append a record to the tail. Returns the new queue length."""
        return await self.redis.rpush(self.key, record.to_json())

    @cache_call
    async def pop(self) -> RoundRecord | None:
        """Pop the head record, or None when the queue is empty.

        Entries that fail to parse are dropped and the next one is tried.
        """
        while True:
            raw = await self.redis.lpop(self.key)
            if raw is None:
                return None
            try:
                return RoundRecord.from_json(raw)
            except ValueError as e:
                logger.warning(f"Dropping malformed queue entry: {e}")

    @cache_call
    async def length(self) -> int:
        """Current number of buffered records."""
        return int(await self.redis.llen(self.key))

    @cache_call
    async def clear(self) -> None:
        """Drop every buffered record."""
        await self.redis.delete(self.key)
