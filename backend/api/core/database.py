"""PostgreSQL connection management for the score ledger."""

import asyncio
import logging
from collections.abc import AsyncGenerator

import asyncpg

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages PostgreSQL connection pool lifecycle"""

    def __init__(
        self,
        database_url: str,
        *,
        ssl: bool = True,
        max_retries: int = 3,
        retry_delay: float = 2.0,
    ):
        self.database_url = database_url
        self.ssl = ssl
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Create and verify the connection pool, retrying with backoff."""
        if self._pool is not None:
            logger.warning("Database pool already initialized")
            return

        for attempt in range(1, self.max_retries + 1):
            try:
                self._pool = await asyncpg.create_pool(
                    self.database_url,
                    min_size=1,
                    max_size=10,
                    timeout=10.0,
                    command_timeout=15.0,
                    ssl="require" if self.ssl else None,
                    max_inactive_connection_lifetime=300.0,
                )
                async with self._pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")
                logger.info("Database pool created and verified")
                return
            except Exception as e:
                if self._pool is not None:
                    await self._pool.close()
                    self._pool = None
                if attempt >= self.max_retries:
                    logger.exception(
                        f"Database connection failed after {attempt} attempts: "
                        f"{type(e).__name__}: {e or repr(e)}"
                    )
                    raise
                delay = self.retry_delay * (2 ** (attempt - 1))
                logger.warning(
                    f"Database connection attempt {attempt}/{self.max_retries} failed: "
                    f"{type(e).__name__}: {e or repr(e)}, retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

    async def disconnect(self) -> None:
        """Close database connection pool"""
        if self._pool is None:
            return

        try:
            await self._pool.close()
            logger.info("Database pool closed")
        except Exception as e:
            logger.exception(f"Error closing database pool: {e}")
        finally:
            self._pool = None

    async def check_health(self) -> bool:
        """Test if the pool can actually execute a query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
            return True
        except Exception:
            return False

    @property
    def pool(self) -> asyncpg.Pool:
        """Get the database connection pool"""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool

    async def get_connection(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Get a database connection from the pool (for dependency injection)"""
        async with self.pool.acquire() as conn:
            yield conn


# Global database manager instance
_db_manager: DatabaseManager | None = None


def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance"""
    if _db_manager is None:
        raise RuntimeError("Database manager not initialized")
    return _db_manager


def init_database_manager(database_url: str, *, ssl: bool = True) -> DatabaseManager:
    """Initialize the global database manager"""
    global _db_manager
    _db_manager = DatabaseManager(database_url, ssl=ssl)
    return _db_manager
