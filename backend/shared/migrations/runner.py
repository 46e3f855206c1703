"""Plain-SQL migration runner for the players / user_scores schema."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"

# pg_advisory_xact_lock key shared by every instance running migrations
MIGRATION_LOCK_ID = 0x706B6775


class MigrationRunner:
    """Apply ``versions/NNN_name.sql`` files once each, in filename order.

    Applied versions are tracked in ``schema_migrations``. Each file runs in
    its own transaction together with its tracking row, under an advisory
    lock, so several server instances starting at once apply it only once.
    """

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool, versions_dir: Path | None = None) -> None:
        self.pool = pool
        self.versions_dir = versions_dir or VERSIONS_DIR

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATION_LOCK_ID)
                await conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                        version    TEXT PRIMARY KEY,
                        applied_at TIMESTAMPTZ DEFAULT NOW()
                    )
                    """
                )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    async def pending(self) -> list[Path]:
        """SQL files not applied yet, oldest first."""
        await self.ensure_table()
        applied = await self.get_applied()
        return [p for p in sorted(self.versions_dir.glob("*.sql")) if p.stem not in applied]

    async def run_pending(self) -> list[str]:
        """Apply every pending migration. Returns the versions this call applied."""
        todo = await self.pending()
        if not todo:
            logger.info("Database schema is up to date")
            return []

        applied: list[str] = []
        for sql_path in todo:
            version = sql_path.stem
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATION_LOCK_ID)
                    # Another instance may have applied it while we waited for the lock
                    done = await conn.fetchval(
                        f"SELECT 1 FROM {self.TRACKING_TABLE} WHERE version = $1",  # noqa: S608
                        version,
                    )
                    if done:
                        logger.info(f"Migration {version} already applied by another instance")
                        continue

                    logger.info(f"Applying migration {version}")
                    await conn.execute(sql_path.read_text(encoding="utf-8"))
                    await conn.execute(
                        f"INSERT INTO {self.TRACKING_TABLE} (version) VALUES ($1) "  # noqa: S608
                        "ON CONFLICT (version) DO NOTHING",
                        version,
                    )
            applied.append(version)

        if applied:
            logger.info(f"Applied {len(applied)} migration(s): {', '.join(applied)}")
        return applied
