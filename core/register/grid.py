"""
Period grid builder

Projects the effective records of a ledger onto every calendar date of an
inclusive range. Dates without a record get a row with effective_entry
None, so gaps in a register (e.g. a day without an RP sign-in) are visible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import TYPE_CHECKING, Iterable

from core.constants import Defaults
from core.register.errors import ValidationError
from core.register.registry import LedgerRegistry
from core.register.resolver import EffectiveRecord, resolve_effective_records
from core.register.schema import SchemaRegistry
from core.register.store import EntryStore
from core.register.types import LedgerEntry

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter


@dataclass(frozen=True)
class GridRow:
    date: date
    effective_entry: LedgerEntry | None = None
    record: EffectiveRecord | None = None

    @property
    def is_empty(self) -> bool:
        return self.effective_entry is None


def build_grid(
    records: Iterable[EffectiveRecord],
    start: date,
    end: date,
) -> list[GridRow]:
    """One row per date in [start, end]

    Raises:
        ValidationError: start after end, or range longer than MAX_GRID_DAYS
    """
    if start > end:
        raise ValidationError(f"start: {start} is after end {end}")
    days = (end - start).days + 1
    if days > Defaults.MAX_GRID_DAYS:
        raise ValidationError(
            f"range: {days} days exceeds the limit of {Defaults.MAX_GRID_DAYS}"
        )

    by_date = {record.date: record for record in records}
    rows = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        record = by_date.get(day)
        rows.append(
            GridRow(
                date=day,
                effective_entry=record.effective_entry if record else None,
                record=record,
            )
        )
    return rows


class PeriodGridBuilder:
    """Loads a ledger's entries, resolves them and builds the grid

    Args:
        db: SQLite adapter
        schemas: register schemas
    """

    def __init__(self, db: SQLiteAdapter, schemas: SchemaRegistry):
        self.registry = LedgerRegistry(db, schemas)
        self.store = EntryStore(db)

    async def build(self, ledger_id: str, start: date, end: date) -> list[GridRow]:
        # Validate the range before touching storage
        build_grid([], start, end)
        await self.registry.get(ledger_id)

        # Corrections of in-range records may carry any date, so load the whole ledger
        records = resolve_effective_records(await self.store.list(ledger_id))
        return build_grid(records, start, end)
