"""
Response schemas (Pydantic)

Web API response serialisation. Quantities are returned as strings so
Decimal precision survives JSON.
"""

import datetime as dt
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field

from core.register import (
    ActivePharmacist,
    BalanceCheck,
    BalanceReport,
    EditHistory,
    EntryAnnotation,
    GridRow,
    IntegrityReport,
    Ledger,
    LedgerEntry,
)


class HealthResponse(BaseModel):
    """Health check response"""

    status: str = Field(default="ok", description="Service status")
    register_types: list[str] = Field(default_factory=list, description="Configured register types")
    timestamp: datetime = Field(..., description="Response time (UTC)")


class ErrorResponse(BaseModel):
    """Error body (404/409/422)"""

    error: str = Field(..., description="not_found | conflict | validation")
    message: str = Field(..., description="Human readable message")
    issues: list[str] = Field(default_factory=list, description="Validation issues")
    expected_version: int | None = Field(default=None, description="Version sent by the caller (409)")
    current_version: int | None = Field(default=None, description="Current ledger version (409)")


class LedgerResponse(BaseModel):
    """Ledger"""

    ledger_id: str = Field(..., description="Ledger ID")
    register_type: str = Field(..., description="Register type")
    subject_key: str | None = Field(default=None, description="Subject key")
    lock_version: int = Field(..., description="Current version (send as expected_lock_version)")
    next_entry_number: int = Field(..., description="Number the next entry will get")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Subject description")
    is_active: bool = Field(..., description="Active flag")
    created_by: str | None = Field(default=None, description="Creator")
    created_at: datetime | None = Field(default=None, description="Creation time (UTC)")
    updated_at: datetime | None = Field(default=None, description="Last append time (UTC)")

    @classmethod
    def from_ledger(cls, ledger: Ledger) -> "LedgerResponse":
        return cls(
            ledger_id=ledger.ledger_id,
            register_type=ledger.register_type,
            subject_key=ledger.subject.key,
            lock_version=ledger.lock_version,
            next_entry_number=ledger.next_entry_number,
            metadata=ledger.metadata,
            is_active=ledger.is_active,
            created_by=ledger.created_by,
            created_at=ledger.created_at,
            updated_at=ledger.updated_at,
        )


class EntryResponse(BaseModel):
    """Ledger entry"""

    entry_id: str = Field(..., description="Entry ID")
    ledger_id: str = Field(..., description="Ledger ID")
    entry_number: int = Field(..., description="Per-ledger number (1..N)")
    entry_type: str = Field(..., description="normal | correction")
    date_of_transaction: date = Field(..., description="Logical date")
    payload: dict[str, Any] = Field(default_factory=dict, description="Register-specific fields")
    entered_by: str = Field(..., description="Entered by")
    entered_at: datetime = Field(..., description="Append time (UTC)")
    source: str = Field(..., description="manual | ai_scan | import")
    ledger_lock_version: int = Field(..., description="Ledger version the entry was appended against")
    corrects_entry_id: str | None = Field(default=None, description="Superseded entry")
    correction_reason: str | None = Field(default=None, description="Correction reason")
    authorised_by: str | None = Field(default=None, description="Authorised by")

    @classmethod
    def from_entry(cls, entry: LedgerEntry) -> "EntryResponse":
        return cls(
            entry_id=entry.entry_id,
            ledger_id=entry.ledger_id,
            entry_number=entry.entry_number,
            entry_type=entry.entry_type.value,
            date_of_transaction=entry.date_of_transaction,
            payload=entry.payload,
            entered_by=entry.entered_by,
            entered_at=entry.entered_at,
            source=entry.source.value,
            ledger_lock_version=entry.ledger_lock_version,
            corrects_entry_id=entry.corrects_entry_id,
            correction_reason=entry.correction_reason,
            authorised_by=entry.authorised_by,
        )


class EntryListResponse(BaseModel):
    """Entries of a ledger"""

    ledger_id: str = Field(..., description="Ledger ID")
    lock_version: int = Field(..., description="Current ledger version")
    total: int = Field(..., description="Number of matching entries")
    limit: int = Field(..., description="Page size")
    offset: int = Field(default=0, description="Entries skipped")
    entries: list[EntryResponse] = Field(default_factory=list, description="Entries by entry_number")


class GridRowResponse(BaseModel):
    """One date of a period grid"""

    date: dt.date = Field(..., description="Calendar date")
    effective_entry: EntryResponse | None = Field(default=None, description="Effective entry, null if none")
    superseded_entry_ids: list[str] = Field(default_factory=list, description="Other records on the same date")

    @classmethod
    def from_row(cls, row: GridRow) -> "GridRowResponse":
        return cls(
            date=row.date,
            effective_entry=EntryResponse.from_entry(row.effective_entry) if row.effective_entry else None,
            superseded_entry_ids=[
                chain.effective.entry_id for chain in row.record.superseded
            ] if row.record else [],
        )


class GridResponse(BaseModel):
    """Period grid"""

    ledger_id: str = Field(..., description="Ledger ID")
    start: date = Field(..., description="First date")
    end: date = Field(..., description="Last date")
    rows: list[GridRowResponse] = Field(default_factory=list, description="One row per date")


class BalanceRowResponse(BaseModel):
    date: dt.date = Field(..., description="Effective date")
    entry_number: int = Field(..., description="Effective entry number")
    entry_id: str = Field(..., description="Effective entry ID")
    delta: str = Field(..., description="Signed quantity change")
    balance_after: str = Field(..., description="Running balance")


class BalanceErrorResponse(BaseModel):
    entry_id: str = Field(..., description="Excluded entry ID")
    entry_number: int = Field(..., description="Excluded entry number")
    message: str = Field(..., description="Why it was excluded")


class BalanceReportResponse(BaseModel):
    """Recomputed running balance"""

    ledger_id: str = Field(..., description="Ledger ID")
    final_balance: str = Field(..., description="Balance after the last row")
    rows: list[BalanceRowResponse] = Field(default_factory=list, description="Running balance rows")
    errors: list[BalanceErrorResponse] = Field(default_factory=list, description="Entries excluded from the total")

    @classmethod
    def from_report(cls, report: BalanceReport) -> "BalanceReportResponse":
        return cls(
            ledger_id=report.ledger_id,
            final_balance=str(report.final_balance),
            rows=[
                BalanceRowResponse(
                    date=row.date,
                    entry_number=row.entry_number,
                    entry_id=row.entry_id,
                    delta=str(row.delta),
                    balance_after=str(row.balance_after),
                )
                for row in report.rows
            ],
            errors=[
                BalanceErrorResponse(
                    entry_id=error.entry_id,
                    entry_number=error.entry_number,
                    message=error.message,
                )
                for error in report.errors
            ],
        )


class BalanceCheckResponse(BaseModel):
    """Balance check outcome"""

    ledger_id: str = Field(..., description="Ledger ID")
    expected: str = Field(..., description="Recomputed balance")
    counted: str = Field(..., description="Physical count")
    difference: str = Field(..., description="counted - expected")
    status: str = Field(..., description="matched | discrepancy")

    @classmethod
    def from_check(cls, check: BalanceCheck) -> "BalanceCheckResponse":
        return cls(
            ledger_id=check.ledger_id,
            expected=str(check.expected),
            counted=str(check.counted),
            difference=str(check.difference),
            status=check.status.value,
        )


class EditStepResponse(BaseModel):
    entry: EntryResponse = Field(..., description="Entry of this step")
    edited_by: str = Field(..., description="Who entered it")
    edited_at: datetime = Field(..., description="When (UTC)")
    reason: str | None = Field(default=None, description="Correction reason (null for the original)")


class EditHistoryResponse(BaseModel):
    """Edit trail of a logical record"""

    root_entry_id: str = Field(..., description="Original normal entry")
    effective_entry_id: str = Field(..., description="Current effective entry")
    steps: list[EditStepResponse] = Field(default_factory=list, description="Original then corrections")

    @classmethod
    def from_history(cls, history: EditHistory) -> "EditHistoryResponse":
        return cls(
            root_entry_id=history.root_entry_id,
            effective_entry_id=history.effective.entry_id,
            steps=[
                EditStepResponse(
                    entry=EntryResponse.from_entry(step.entry),
                    edited_by=step.edited_by,
                    edited_at=step.edited_at,
                    reason=step.reason,
                )
                for step in history.steps
            ],
        )


class AnnotationResponse(BaseModel):
    annotation_id: str = Field(..., description="Annotation ID")
    entry_id: str = Field(..., description="Annotated entry")
    ledger_id: str = Field(..., description="Ledger of the entry")
    annotation_type: str = Field(..., description="note | flag | query | resolution")
    annotation_text: str = Field(..., description="Text")
    created_by: str = Field(..., description="Author")
    created_at: datetime = Field(..., description="Creation time (UTC)")

    @classmethod
    def from_annotation(cls, annotation: EntryAnnotation) -> "AnnotationResponse":
        return cls(
            annotation_id=annotation.annotation_id,
            entry_id=annotation.entry_id,
            ledger_id=annotation.ledger_id,
            annotation_type=annotation.annotation_type,
            annotation_text=annotation.annotation_text,
            created_by=annotation.created_by,
            created_at=annotation.created_at,
        )


class IntegrityResponse(BaseModel):
    """Integrity verification result"""

    ledger_id: str = Field(..., description="Ledger ID")
    ok: bool = Field(..., description="True when no issue was found")
    entry_count: int = Field(..., description="Stored entries")
    lock_version: int = Field(..., description="Stored ledger version")
    issues: list[str] = Field(default_factory=list, description="Violations found")

    @classmethod
    def from_report(cls, report: IntegrityReport) -> "IntegrityResponse":
        return cls(
            ledger_id=report.ledger_id,
            ok=report.ok,
            entry_count=report.entry_count,
            lock_version=report.lock_version,
            issues=report.issues,
        )


class ActivePharmacistResponse(BaseModel):
    """Responsible pharmacist currently signed in"""

    on: date = Field(..., description="Date looked at")
    active: bool = Field(..., description="True when someone is signed in")
    pharmacist_name: str | None = Field(default=None, description="Pharmacist name")
    gphc_number: str | None = Field(default=None, description="GPhC registration number")
    signed_in_at: datetime | None = Field(default=None, description="Sign-in time (UTC)")
    entry_id: str | None = Field(default=None, description="Effective RP entry")

    @classmethod
    def from_active(cls, on: date, active: ActivePharmacist | None) -> "ActivePharmacistResponse":
        if active is None:
            return cls(on=on, active=False)
        return cls(
            on=on,
            active=True,
            pharmacist_name=active.pharmacist_name,
            gphc_number=active.gphc_number,
            signed_in_at=active.signed_in_at,
            entry_id=active.entry.entry_id,
        )
