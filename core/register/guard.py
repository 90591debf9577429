"""
Concurrency guard

The only writer of register_entry. Validates an EntryDraft against the
ledger and its register schema, then appends it with an optimistic
compare-and-swap on the ledger's lock_version:

1. read lock_version; mismatch with expected_version -> ConflictError
2. UPDATE ... SET lock_version = lock_version + 1
   WHERE ledger_id = ? AND lock_version = ?   (rowcount 1 = commit signal)
3. entry_number = MAX(entry_number) + 1
4. INSERT entry, COMMIT

Steps 1-4 run in a single BEGIN IMMEDIATE transaction. Any failure rolls
back both the version bump and the entry.

Usage:
```python
guard = ConcurrencyGuard(db, schemas)
entry = await guard.append(ledger.ledger_id, ledger.lock_version, draft)
```
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from core.register.entries import CorrectionDraft, EntryDraft
from core.register.errors import ConflictError, NotFoundError, ValidationError
from core.register.registry import LedgerRegistry
from core.register.schema import SchemaRegistry
from core.register.store import EntryStore
from core.register.types import Ledger, LedgerEntry
from core.utils.timezone import ensure_utc, now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class ConcurrencyGuard:
    """Validated, version-checked append

    Args:
        db: SQLite adapter
        schemas: register schemas used to validate payloads
        clock: UTC clock for entered_at
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

    async def append(
        self,
        ledger_id: str,
        expected_version: int,
        draft: EntryDraft,
        register_type: str | None = None,
    ) -> LedgerEntry:
        """Append a draft if the ledger is still at expected_version

        Args:
            ledger_id: target ledger
            expected_version: lock_version the caller last saw
            draft: NormalDraft or CorrectionDraft
            register_type: optional, must match the ledger's register type

        Returns:
            The committed LedgerEntry

        Raises:
            NotFoundError: unknown ledger, or correction target missing or
                in another ledger
            ValidationError: payload/draft invalid or register type mismatch
            ConflictError: the ledger moved past expected_version
        """
        ledger = await self.registry.get(ledger_id)
        payload = await self._validate(ledger, expected_version, draft, register_type)

        try:
            entry = await self._commit(ledger, expected_version, draft, payload)
        except ConflictError as e:
            logger.warning(
                f"Append rejected: {e}",
                extra={
                    "ledger_id": ledger_id,
                    "expected_version": e.expected_version,
                    "actual_version": e.actual_version,
                },
            )
            raise

        logger.info(
            f"Entry appended: {ledger.subject} #{entry.entry_number} ({entry.entry_type.value})",
            extra={
                "ledger_id": ledger_id,
                "entry_id": entry.entry_id,
                "entry_number": entry.entry_number,
                "lock_version": expected_version + 1,
                "entered_by": entry.entered_by,
            },
        )
        return entry

    async def _validate(
        self,
        ledger: Ledger,
        expected_version: int,
        draft: EntryDraft,
        register_type: str | None,
    ) -> dict:
        """Pre-atomic checks; returns the normalised payload"""
        if isinstance(expected_version, bool) or not isinstance(expected_version, int):
            raise ValidationError("expected_lock_version: must be an integer")

        if register_type is not None:
            register_type = str(getattr(register_type, "value", register_type))
            if register_type != ledger.register_type:
                raise ValidationError(
                    f"register_type: ledger {ledger.ledger_id} belongs to "
                    f"{ledger.register_type}, not {register_type}"
                )

        schema = self.schemas.get(ledger.register_type)
        payload = schema.validate_payload(draft.payload)

        if isinstance(draft, CorrectionDraft):
            target = await self.store.get(draft.corrects_entry_id)
            if target.ledger_id != ledger.ledger_id:
                raise NotFoundError(
                    "entry",
                    draft.corrects_entry_id,
                    f"not in ledger {ledger.ledger_id}",
                )

        return payload

    async def _commit(
        self,
        ledger: Ledger,
        expected_version: int,
        draft: EntryDraft,
        payload: dict,
    ) -> LedgerEntry:
        ledger_id = ledger.ledger_id
        entered_at = ensure_utc(self.clock())

        async with self.db.transaction():
            row = await self.db.fetchone(
                "SELECT lock_version FROM register_ledger WHERE ledger_id = ?",
                (ledger_id,),
            )
            actual_version = row[0]
            if actual_version != expected_version:
                raise ConflictError(ledger_id, expected_version, actual_version)

            cursor = await self.db.execute(
                """
                UPDATE register_ledger
                SET lock_version = lock_version + 1, updated_at = ?
                WHERE ledger_id = ? AND lock_version = ?
                """,
                (entered_at.isoformat(), ledger_id, expected_version),
            )
            if cursor.rowcount != 1:
                raise ConflictError(ledger_id, expected_version, actual_version)

            row = await self.db.fetchone(
                "SELECT COALESCE(MAX(entry_number), 0) + 1 FROM register_entry WHERE ledger_id = ?",
                (ledger_id,),
            )

            entry = LedgerEntry(
                entry_id=str(uuid.uuid4()),
                ledger_id=ledger_id,
                entry_number=row[0],
                entry_type=draft.entry_type,
                date_of_transaction=draft.date_of_transaction,
                payload=payload,
                entered_by=draft.entered_by.strip(),
                entered_at=entered_at,
                source=draft.source,
                ledger_lock_version=expected_version,
                corrects_entry_id=getattr(draft, "corrects_entry_id", None),
                correction_reason=getattr(draft, "correction_reason", None),
                authorised_by=draft.authorised_by,
            )

            await self.db.execute(
                """
                INSERT INTO register_entry (
                    entry_id, ledger_id, entry_number, entry_type,
                    corrects_entry_id, correction_reason, date_of_transaction,
                    payload_json, entered_by, entered_at, authorised_by,
                    source, ledger_lock_version
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entry.entry_id,
                    entry.ledger_id,
                    entry.entry_number,
                    entry.entry_type.value,
                    entry.corrects_entry_id,
                    entry.correction_reason,
                    entry.date_of_transaction.isoformat(),
                    json.dumps(entry.payload),
                    entry.entered_by,
                    entry.entered_at.isoformat(),
                    entry.authorised_by,
                    entry.source.value,
                    entry.ledger_lock_version,
                ),
            )

        return entry
