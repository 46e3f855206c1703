"""Run database migrations using shared.migrations.runner.

Usage:
    python db_migrate.py          # Run all pending migrations
    python db_migrate.py --dry    # Show pending migrations without applying
"""

import asyncio
import logging
import sys
from pathlib import Path

# Ensure backend/ and backend/api/ are on sys.path so shared.* and core.* are importable
_backend_dir = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_backend_dir))
sys.path.insert(0, str(_backend_dir / "api"))

import asyncpg

from core.config import get_settings
from shared.migrations.runner import MigrationRunner

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def main() -> None:
    settings = get_settings()
    pool = await asyncpg.create_pool(
        settings.database_url,
        min_size=1,
        max_size=2,
        ssl="require" if settings.database_ssl else None,
    )

    try:
        runner = MigrationRunner(pool)

        if "--dry" in sys.argv:
            pending = await runner.pending()
            print(f"Pending: {len(pending)}")
            for path in pending:
                print(f"  -> {path.stem}")
            if not pending:
                print("Database is up to date.")
        else:
            newly_applied = await runner.run_pending()
            if not newly_applied:
                print("No pending migrations.")
            else:
                print(f"Applied {len(newly_applied)} migration(s).")
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
