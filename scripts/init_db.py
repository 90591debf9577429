"""
Register ledger schema initialisation

Creates the register tables, indexes and append-only triggers. Safe to run
repeatedly.

Usage:
    python -m scripts.init_db
    python -m scripts.init_db --settings config/settings.yaml
    python -m scripts.init_db --db data/other.db
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, get_db_path, init_schema
from core.config.loader import get_settings
from core.logging import setup_logging

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("register_ledger", "register_entry", "entry_annotation")


async def verify_schema(db: SQLiteAdapter) -> bool:
    """Check that every register table exists"""
    missing = [name for name in REQUIRED_TABLES if not await db.table_exists(name)]
    if missing:
        logger.error(f"Missing tables: {missing}")
        return False

    for name in REQUIRED_TABLES:
        columns = await db.get_table_info(name)
        logger.info(f"  - {name}: {len(columns)} columns")
    return True


async def main(db_path: Path) -> None:
    """Initialise the schema

    Args:
        db_path: SQLite database file
    """
    logger.info(f"Schema initialisation: {db_path}")

    async with SQLiteAdapter(db_path) as db:
        await init_schema(db)

        if await verify_schema(db):
            logger.info("Schema initialisation complete")
        else:
            raise RuntimeError("Schema verification failed")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register ledger schema initialisation")
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="settings.yaml path (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database file (overrides settings)",
    )
    args = parser.parse_args()

    settings = get_settings(args.settings)
    setup_logging("scripts", console_level=settings.log_level, log_dir=settings.log_dir)
    db_path = args.db or get_db_path(settings)

    asyncio.run(main(db_path))
