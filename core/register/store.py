"""
Entry store

Read side of the append-only entry table. There is no update
or delete method; new rows are written only by the ConcurrencyGuard.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from core.register.errors import NotFoundError
from core.register.types import ENTRY_COLUMNS, LedgerEntry

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


def entry_matches(entry: LedgerEntry, needle: str) -> bool:
    """Case-insensitive substring match over the searchable text of an entry

    Args:
        entry: entry to test
        needle: lower-cased search text
    """
    haystack = [str(value) for value in entry.payload.values() if value is not None]
    haystack.extend(
        value
        for value in (entry.correction_reason, entry.entered_by, entry.authorised_by)
        if value
    )
    return any(needle in value.lower() for value in haystack)


class EntryStore:
    """Entry store

    Args:
        db: SQLite adapter
    """

    def __init__(self, db: SQLiteAdapter):
        self.db = db

    async def list(self, ledger_id: str) -> list[LedgerEntry]:
        """Every entry of a ledger ordered by entry_number"""
        rows = await self.db.fetchall(
            f"""
            SELECT {ENTRY_COLUMNS} FROM register_entry
            WHERE ledger_id = ?
            ORDER BY entry_number
            """,
            (ledger_id,),
        )
        return [LedgerEntry.from_row(row) for row in rows]

    async def list_between(
        self,
        ledger_id: str,
        start: date,
        end: date,
    ) -> list[LedgerEntry]:
        """Entries whose date_of_transaction falls in [start, end]"""
        rows = await self.db.fetchall(
            f"""
            SELECT {ENTRY_COLUMNS} FROM register_entry
            WHERE ledger_id = ?
              AND date_of_transaction >= ?
              AND date_of_transaction <= ?
            ORDER BY entry_number
            """,
            (ledger_id, start.isoformat(), end.isoformat()),
        )
        return [LedgerEntry.from_row(row) for row in rows]

    async def search(self, ledger_id: str, text: str | None) -> list[LedgerEntry]:
        """Entries matching text (case-insensitive substring)

        Matches payload values, correction_reason, entered_by and
        authorised_by. Blank text returns the full list.
        """
        entries = await self.list(ledger_id)
        needle = (text or "").strip().lower()
        if not needle:
            return entries
        return [entry for entry in entries if entry_matches(entry, needle)]

    async def get(self, entry_id: str) -> LedgerEntry:
        """Entry by id

        Raises:
            NotFoundError: no such entry
        """
        row = await self.db.fetchone(
            f"SELECT {ENTRY_COLUMNS} FROM register_entry WHERE entry_id = ?",
            (entry_id,),
        )
        if row is None:
            raise NotFoundError("entry", entry_id)
        return LedgerEntry.from_row(row)

    async def count(self, ledger_id: str) -> int:
        row = await self.db.fetchone(
            "SELECT COUNT(*) FROM register_entry WHERE ledger_id = ?",
            (ledger_id,),
        )
        return row[0] if row else 0
