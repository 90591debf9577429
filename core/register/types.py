"""
Register ledger domain types

Subject, Ledger, LedgerEntry and EntryAnnotation as read back from
storage. All are immutable; state changes happen only through new rows.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from core.types import EntrySource, EntryType


# Column order shared by SELECT statements and from_row()
LEDGER_COLUMNS = (
    "ledger_id, register_type, subject_key, lock_version, metadata_json, "
    "is_active, created_by, created_at, updated_at"
)

ENTRY_COLUMNS = (
    "entry_id, ledger_id, entry_number, entry_type, corrects_entry_id, "
    "correction_reason, date_of_transaction, payload_json, entered_by, "
    "entered_at, authorised_by, source, ledger_lock_version"
)

ANNOTATION_COLUMNS = (
    "annotation_id, entry_id, ledger_id, annotation_type, annotation_text, "
    "created_by, created_at"
)


def _plain(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True)
class Subject:
    """What a ledger is about

    register_type plus an optional key (e.g. a drug id). Blank keys
    normalise to None, so Subject("RP", "") == Subject("RP").
    """

    register_type: str
    key: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "register_type", _plain(self.register_type).strip())
        key = self.key
        if key is not None:
            key = str(key).strip() or None
        object.__setattr__(self, "key", key)

    @property
    def storage_key(self) -> str:
        """subject_key column value ('' for no key)"""
        return self.key or ""

    def __str__(self) -> str:
        return f"{self.register_type}:{self.key}" if self.key else self.register_type


@dataclass(frozen=True)
class Ledger:
    """One register instance for one subject

    lock_version starts at 0 and counts successful appends.
    """

    ledger_id: str
    subject: Subject
    lock_version: int
    metadata: dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def register_type(self) -> str:
        return self.subject.register_type

    @property
    def next_entry_number(self) -> int:
        return self.lock_version + 1

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> Ledger:
        """Build from a row selected with LEDGER_COLUMNS"""
        return cls(
            ledger_id=row[0],
            subject=Subject(row[1], row[2] or None),
            lock_version=row[3],
            metadata=json.loads(row[4]) if row[4] else {},
            is_active=bool(row[5]),
            created_by=row[6],
            created_at=datetime.fromisoformat(row[7]),
            updated_at=datetime.fromisoformat(row[8]),
        )


@dataclass(frozen=True)
class LedgerEntry:
    """One immutable row of a ledger"""

    entry_id: str
    ledger_id: str
    entry_number: int
    entry_type: EntryType
    date_of_transaction: date
    payload: dict[str, Any]
    entered_by: str
    entered_at: datetime
    source: EntrySource
    ledger_lock_version: int
    corrects_entry_id: str | None = None
    correction_reason: str | None = None
    authorised_by: str | None = None

    @property
    def is_correction(self) -> bool:
        return self.entry_type == EntryType.CORRECTION

    @property
    def order_key(self) -> tuple[datetime, int]:
        """Ordering used to pick the latest entry of a chain"""
        return (self.entered_at, self.entry_number)

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> LedgerEntry:
        """Build from a row selected with ENTRY_COLUMNS"""
        return cls(
            entry_id=row[0],
            ledger_id=row[1],
            entry_number=row[2],
            entry_type=EntryType(row[3]),
            corrects_entry_id=row[4],
            correction_reason=row[5],
            date_of_transaction=date.fromisoformat(row[6]),
            payload=json.loads(row[7]),
            entered_by=row[8],
            entered_at=datetime.fromisoformat(row[9]),
            authorised_by=row[10],
            source=EntrySource(row[11]),
            ledger_lock_version=row[12],
        )


@dataclass(frozen=True)
class EntryAnnotation:
    """Append-only side note on an entry"""

    annotation_id: str
    entry_id: str
    ledger_id: str
    annotation_type: str
    annotation_text: str
    created_by: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: tuple[Any, ...]) -> EntryAnnotation:
        return cls(
            annotation_id=row[0],
            entry_id=row[1],
            ledger_id=row[2],
            annotation_type=row[3],
            annotation_text=row[4],
            created_by=row[5],
            created_at=datetime.fromisoformat(row[6]),
        )
