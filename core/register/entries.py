"""
Entry drafts

An append request is either a NormalDraft (a new logical record) or a
CorrectionDraft (supersedes an earlier entry of the same ledger). A
correction cannot exist without its target and a non-blank reason.

Usage:
```python
draft = NormalDraft(
    date_of_transaction=date(2024, 3, 1),
    payload={"transaction_type": "receipt", "quantity_received": "10"},
    entered_by="pharmacist-1",
)
fix = CorrectionDraft(
    corrects_entry_id=entry.entry_id,
    correction_reason="Wrong quantity",
    date_of_transaction=date(2024, 3, 1),
    payload={"transaction_type": "receipt", "quantity_received": "12"},
    entered_by="pharmacist-1",
)
```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union

from core.register.errors import ValidationError
from core.types import EntrySource, EntryType


def _check_common(date_of_transaction: Any, entered_by: Any) -> list[str]:
    issues = []
    if not isinstance(date_of_transaction, date):
        issues.append("date_of_transaction: must be a date")
    if not isinstance(entered_by, str) or not entered_by.strip():
        issues.append("entered_by: required")
    return issues


@dataclass(frozen=True)
class NormalDraft:
    """Draft of a new logical record"""

    date_of_transaction: date
    payload: dict[str, Any]
    entered_by: str
    source: EntrySource = EntrySource.MANUAL
    authorised_by: str | None = None

    def __post_init__(self) -> None:
        issues = _check_common(self.date_of_transaction, self.entered_by)
        if issues:
            raise ValidationError(issues)
        object.__setattr__(self, "source", EntrySource(self.source))

    @property
    def entry_type(self) -> EntryType:
        return EntryType.NORMAL


@dataclass(frozen=True)
class CorrectionDraft:
    """Draft of a correction superseding corrects_entry_id

    Raises:
        ValidationError: blank target or blank reason
    """

    corrects_entry_id: str
    correction_reason: str
    date_of_transaction: date
    payload: dict[str, Any] = field(default_factory=dict)
    entered_by: str = ""
    source: EntrySource = EntrySource.MANUAL
    authorised_by: str | None = None

    def __post_init__(self) -> None:
        issues = []
        if not isinstance(self.corrects_entry_id, str) or not self.corrects_entry_id.strip():
            issues.append("corrects_entry_id: required for a correction")
        if not isinstance(self.correction_reason, str) or not self.correction_reason.strip():
            issues.append("correction_reason: required for a correction")
        issues.extend(_check_common(self.date_of_transaction, self.entered_by))
        if issues:
            raise ValidationError(issues)
        object.__setattr__(self, "correction_reason", self.correction_reason.strip())
        object.__setattr__(self, "source", EntrySource(self.source))

    @property
    def entry_type(self) -> EntryType:
        return EntryType.CORRECTION


EntryDraft = Union[NormalDraft, CorrectionDraft]


def make_draft(
    entry_type: EntryType | str,
    date_of_transaction: date,
    payload: dict[str, Any],
    entered_by: str,
    source: EntrySource | str = EntrySource.MANUAL,
    corrects_entry_id: str | None = None,
    correction_reason: str | None = None,
    authorised_by: str | None = None,
) -> EntryDraft:
    """Build the draft variant for a flat append request

    Raises:
        ValidationError: unknown entry_type/source, correction fields on a
            normal entry, or missing correction fields
    """
    try:
        entry_type = EntryType(entry_type)
    except ValueError:
        raise ValidationError(f"entry_type: invalid value '{entry_type}'") from None
    try:
        source = EntrySource(source)
    except ValueError:
        raise ValidationError(f"source: invalid value '{source}'") from None

    if entry_type == EntryType.NORMAL:
        if corrects_entry_id or correction_reason:
            raise ValidationError(
                "corrects_entry_id/correction_reason: only allowed on corrections"
            )
        return NormalDraft(
            date_of_transaction=date_of_transaction,
            payload=payload,
            entered_by=entered_by,
            source=source,
            authorised_by=authorised_by,
        )

    return CorrectionDraft(
        corrects_entry_id=corrects_entry_id or "",
        correction_reason=correction_reason or "",
        date_of_transaction=date_of_transaction,
        payload=payload,
        entered_by=entered_by,
        source=source,
        authorised_by=authorised_by,
    )
