"""
Register ledger schema initialisation

Creates the ledger, entry and annotation tables, their indexes, and the
triggers that make entries and annotations append-only and ledgers
undeletable. CREATE ... IF NOT EXISTS throughout, so it is safe to run at
every start.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


async def init_register_schema(db: "SQLiteAdapter") -> None:
    """Register ledger schema (tables + indexes + triggers)

    Args:
        db: SQLiteAdapter instance
    """
    async with db.transaction():
        await _create_tables(db)
        await _create_indexes(db)
        await _create_triggers(db)
    logger.info("Register ledger schema initialised")


async def _create_tables(db: "SQLiteAdapter") -> None:
    # subject_key '' means "no key" so UNIQUE treats keyless ledgers as equal
    await db.execute("""
        CREATE TABLE IF NOT EXISTS register_ledger (
            ledger_id        TEXT PRIMARY KEY,
            register_type    TEXT NOT NULL,
            subject_key      TEXT NOT NULL DEFAULT '',
            lock_version     INTEGER NOT NULL DEFAULT 0 CHECK (lock_version >= 0),
            metadata_json    TEXT,
            is_active        INTEGER NOT NULL DEFAULT 1,
            created_by       TEXT,
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL,

            UNIQUE(register_type, subject_key)
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS register_entry (
            entry_id             TEXT PRIMARY KEY,
            ledger_id            TEXT NOT NULL REFERENCES register_ledger(ledger_id),
            entry_number         INTEGER NOT NULL CHECK (entry_number >= 1),
            entry_type           TEXT NOT NULL CHECK (entry_type IN ('normal', 'correction')),
            corrects_entry_id    TEXT REFERENCES register_entry(entry_id),
            correction_reason    TEXT,
            date_of_transaction  TEXT NOT NULL,
            payload_json         TEXT NOT NULL,
            entered_by           TEXT NOT NULL,
            entered_at           TEXT NOT NULL,
            authorised_by        TEXT,
            source               TEXT NOT NULL,
            ledger_lock_version  INTEGER NOT NULL,

            UNIQUE(ledger_id, entry_number),
            CHECK (
                (entry_type = 'normal' AND corrects_entry_id IS NULL)
                OR (entry_type = 'correction' AND corrects_entry_id IS NOT NULL
                    AND correction_reason IS NOT NULL)
            )
        )
    """)

    await db.execute("""
        CREATE TABLE IF NOT EXISTS entry_annotation (
            annotation_id    TEXT PRIMARY KEY,
            entry_id         TEXT NOT NULL REFERENCES register_entry(entry_id),
            ledger_id        TEXT NOT NULL REFERENCES register_ledger(ledger_id),
            annotation_type  TEXT NOT NULL,
            annotation_text  TEXT NOT NULL,
            created_by       TEXT NOT NULL,
            created_at       TEXT NOT NULL
        )
    """)


async def _create_indexes(db: "SQLiteAdapter") -> None:
    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_register_entry_date
        ON register_entry(ledger_id, date_of_transaction)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_register_entry_corrects
        ON register_entry(corrects_entry_id)
    """)

    await db.execute("""
        CREATE INDEX IF NOT EXISTS ix_entry_annotation_entry
        ON entry_annotation(entry_id)
    """)


async def _create_triggers(db: "SQLiteAdapter") -> None:
    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_register_entry_no_update
        BEFORE UPDATE ON register_entry
        BEGIN
            SELECT RAISE(ABORT, 'register_entry is append-only');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_register_entry_no_delete
        BEFORE DELETE ON register_entry
        BEGIN
            SELECT RAISE(ABORT, 'register_entry is append-only');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_register_ledger_no_delete
        BEFORE DELETE ON register_ledger
        BEGIN
            SELECT RAISE(ABORT, 'register_ledger rows cannot be deleted');
        END
    """)

    # Identity columns of a ledger never change; only the version moves
    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_register_ledger_identity
        BEFORE UPDATE OF ledger_id, register_type, subject_key, created_at
        ON register_ledger
        BEGIN
            SELECT RAISE(ABORT, 'register_ledger identity is immutable');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_entry_annotation_no_update
        BEFORE UPDATE ON entry_annotation
        BEGIN
            SELECT RAISE(ABORT, 'entry_annotation is append-only');
        END
    """)

    await db.execute("""
        CREATE TRIGGER IF NOT EXISTS trg_entry_annotation_no_delete
        BEFORE DELETE ON entry_annotation
        BEGIN
            SELECT RAISE(ABORT, 'entry_annotation is append-only');
        END
    """)
