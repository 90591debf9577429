"""
Ledger integrity verification

Checks every ledger (or one) for gaps in entry numbers, lock_version
drift and dangling corrections. Exits with status 1 when any ledger has
violations.

Usage:
    python -m scripts.verify_ledgers
    python -m scripts.verify_ledgers --register-type CD
    python -m scripts.verify_ledgers --ledger-id <uuid>
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from adapters.db.sqlite_adapter import SQLiteAdapter, get_db_path
from core.config.loader import get_settings
from core.logging import setup_logging
from core.register import RegisterService, load_register_schemas

logger = logging.getLogger(__name__)


async def main(
    db_path: Path,
    registers_file: Path | None,
    register_type: str | None = None,
    ledger_id: str | None = None,
) -> int:
    """Verify ledgers

    Returns:
        Number of ledgers with violations
    """
    schemas = load_register_schemas(registers_file)

    async with SQLiteAdapter(db_path, readonly=True) as db:
        service = RegisterService(db, schemas)

        if ledger_id:
            ledgers = [await service.get_ledger(ledger_id)]
        else:
            ledgers = await service.list_ledgers(register_type, active_only=False)

        failed = 0
        for ledger in ledgers:
            report = await service.verify_ledger(ledger.ledger_id)
            if report.ok:
                logger.info(
                    f"OK   {ledger.subject} ({report.entry_count} entries, v{report.lock_version})"
                )
                continue

            failed += 1
            logger.error(f"FAIL {ledger.subject} ({ledger.ledger_id})")
            for issue in report.issues:
                logger.error(f"  - {issue}")

    logger.info(f"Verified {len(ledgers)} ledgers, {failed} with violations")
    return failed


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Register ledger integrity verification")
    parser.add_argument("--settings", type=Path, default=None, help="settings.yaml path")
    parser.add_argument("--register-type", default=None, help="Only ledgers of this register type")
    parser.add_argument("--ledger-id", default=None, help="Only this ledger")
    args = parser.parse_args()

    settings = get_settings(args.settings)
    setup_logging("scripts", console_level=settings.log_level, log_dir=settings.log_dir)

    failed = asyncio.run(
        main(
            get_db_path(settings),
            settings.registers_file,
            register_type=args.register_type,
            ledger_id=args.ledger_id,
        )
    )
    sys.exit(1 if failed else 0)
