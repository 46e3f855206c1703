"""Redis connection management for the round queue and round state."""

import logging

from redis.asyncio import Redis

logger = logging.getLogger(__name__)


class RedisManager:
    """Owns the shared Redis client used by every queue/state repository."""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self._client: Redis | None = None

    async def connect(self) -> None:
        """Create the client and verify the server answers."""
        if self._client is not None:
            logger.warning("Redis client already initialized")
            return

        client = Redis.from_url(
            self.redis_url,
            decode_responses=True,
            health_check_interval=30,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        try:
            await client.ping()
        except Exception:
            await client.aclose()
            raise
        self._client = client
        logger.info("Redis connected")

    async def disconnect(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.exception(f"Error closing Redis connection: {e}")
        finally:
            self._client = None

    async def check_health(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(await self._client.ping())
        except Exception:
            return False

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis client not initialized. Call connect() first.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None


_redis_manager: RedisManager | None = None


def get_redis_manager() -> RedisManager:
    """Get the global Redis manager instance"""
    if _redis_manager is None:
        raise RuntimeError("Redis manager not initialized")
    return _redis_manager


def init_redis_manager(redis_url: str) -> RedisManager:
    """Initialize the global Redis manager"""
    global _redis_manager
    _redis_manager = RedisManager(redis_url)
    return _redis_manager
