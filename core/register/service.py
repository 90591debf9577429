"""
Register service

Explicit session object composing the register components over one
SQLite adapter and one schema registry. Callers (web routes, scripts,
tests) construct it per unit of work and pass it around; there is no
process-wide "current ledger".

Usage:
```python
service = RegisterService(db, schemas)
ledger = await service.open_ledger("CD", "morphine-10mg", metadata={...})
entry = await service.append_entry(
    ledger_id=ledger.ledger_id,
    register_type="CD",
    entry_type="normal",
    date_of_transaction=date(2024, 3, 1),
    payload={"transaction_type": "receipt", "quantity_received": "10"},
    expected_lock_version=ledger.lock_version,
    entered_by="pharmacist-1",
    source="manual",
)
report = await service.recompute_balance(ledger.ledger_id)
```
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable

from core.register.annotations import AnnotationStore
from core.register.balance import BalanceCheck, BalanceEngine, BalanceReport
from core.register.entries import make_draft
from core.register.errors import ValidationError
from core.register.grid import GridRow, PeriodGridBuilder
from core.register.guard import ConcurrencyGuard
from core.register.integrity import IntegrityReport, verify_ledger
from core.register.registry import LedgerRegistry
from core.register.resolver import (
    EditHistory,
    EffectiveRecord,
    build_edit_history,
    resolve_effective_records,
)
from core.register.rp_log import ActivePharmacist, find_active_pharmacist
from core.register.schema import SchemaRegistry
from core.register.store import EntryStore
from core.register.types import EntryAnnotation, Ledger, LedgerEntry, Subject
from core.types import AnnotationType, EntrySource, EntryType, RegisterType
from core.utils.timezone import local_today, now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter


class RegisterService:
    """Register service

    Args:
        db: SQLite adapter (connected, schema initialised)
        schemas: register schemas
        clock: UTC clock for entered_at/created_at
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        schemas: SchemaRegistry,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.schemas = schemas
        self.clock = clock
        self.registry = LedgerRegistry(db, schemas, clock)
        self.store = EntryStore(db)
        self.guard = ConcurrencyGuard(db, schemas, clock)
        self.balance = BalanceEngine(db, schemas)
        self.grid = PeriodGridBuilder(db, schemas)
        self.annotations = AnnotationStore(db, clock)

    # -------------------------------------------------------------------------
    # Ledgers
    # -------------------------------------------------------------------------

    async def open_ledger(
        self,
        register_type: RegisterType | str,
        subject_key: str | None = None,
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> Ledger:
        """Get or create the ledger of a subject"""
        return await self.registry.get_or_create(
            Subject(register_type, subject_key),
            metadata=metadata,
            created_by=created_by,
        )

    async def get_ledger(self, ledger_id: str) -> Ledger:
        return await self.registry.get(ledger_id)

    async def list_ledgers(
        self,
        register_type: RegisterType | str | None = None,
        active_only: bool = True,
    ) -> list[Ledger]:
        return await self.registry.list_ledgers(register_type, active_only)

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    async def append_entry(
        self,
        ledger_id: str,
        register_type: RegisterType | str,
        entry_type: EntryType | str,
        date_of_transaction: date,
        payload: dict[str, Any],
        expected_lock_version: int,
        entered_by: str,
        source: EntrySource | str = EntrySource.MANUAL,
        corrects_entry_id: str | None = None,
        correction_reason: str | None = None,
        authorised_by: str | None = None,
    ) -> LedgerEntry:
        """Append a normal entry or a correction

        Raises:
            ConflictError: expected_lock_version is stale
            ValidationError: invalid draft or payload
            NotFoundError: unknown ledger or correction target
        """
        draft = make_draft(
            entry_type=entry_type,
            date_of_transaction=date_of_transaction,
            payload=payload,
            entered_by=entered_by,
            source=source,
            corrects_entry_id=corrects_entry_id,
            correction_reason=correction_reason,
            authorised_by=authorised_by,
        )
        return await self.guard.append(
            ledger_id,
            expected_lock_version,
            draft,
            register_type=register_type,
        )

    async def list_entries(self, ledger_id: str) -> list[LedgerEntry]:
        """Raw entries (corrections included) ordered by entry_number"""
        await self.registry.get(ledger_id)
        return await self.store.list(ledger_id)

    async def search_entries(self, ledger_id: str, text: str | None) -> list[LedgerEntry]:
        await self.registry.get(ledger_id)
        return await self.store.search(ledger_id, text)

    async def get_entry(self, entry_id: str) -> LedgerEntry:
        return await self.store.get(entry_id)

    async def get_history(self, entry_id: str) -> EditHistory:
        """Edit trail of the logical record containing entry_id"""
        entry = await self.store.get(entry_id)
        return build_edit_history(await self.store.list(entry.ledger_id), entry_id)

    async def effective_records(self, ledger_id: str) -> list[EffectiveRecord]:
        await self.registry.get(ledger_id)
        return resolve_effective_records(await self.store.list(ledger_id))

    async def build_period_grid(self, ledger_id: str, start: date, end: date) -> list[GridRow]:
        return await self.grid.build(ledger_id, start, end)

    # -------------------------------------------------------------------------
    # Balance
    # -------------------------------------------------------------------------

    async def recompute_balance(self, ledger_id: str) -> BalanceReport:
        return await self.balance.recompute(ledger_id)

    async def check_balance(self, ledger_id: str, counted: Decimal | int | str) -> BalanceCheck:
        return await self.balance.check(ledger_id, counted)

    # -------------------------------------------------------------------------
    # Supplements
    # -------------------------------------------------------------------------

    async def annotate(
        self,
        entry_id: str,
        annotation_type: AnnotationType | str,
        text: str,
        created_by: str,
    ) -> EntryAnnotation:
        return await self.annotations.add(entry_id, annotation_type, text, created_by)

    async def list_annotations(self, entry_id: str) -> list[EntryAnnotation]:
        return await self.annotations.list_for_entry(entry_id)

    async def active_pharmacist(
        self,
        ledger_id: str,
        on: date | None = None,
    ) -> ActivePharmacist | None:
        """Signed-in RP on a date (default: local today)

        Raises:
            ValidationError: ledger is not an RP register
        """
        ledger = await self.registry.get(ledger_id)
        if ledger.register_type != RegisterType.RP.value:
            raise ValidationError(
                f"register_type: ledger {ledger_id} is {ledger.register_type}, not RP"
            )
        if on is None:
            on = local_today(self.clock())
        return find_active_pharmacist(await self.store.list(ledger_id), on)

    async def verify_ledger(self, ledger_id: str) -> IntegrityReport:
        return await verify_ledger(self.registry, self.store, ledger_id)
