"""
Ledger routes

Ledger lookup/creation, appends (optimistic lock), entry listing and
search, period grid, balance, integrity and active RP.
"""

from datetime import date

from fastapi import APIRouter, Depends, Path, Query

from adapters.db.sqlite_adapter import SQLiteAdapter
from core.constants import Defaults
from core.register import RegisterError, RegisterService, SchemaRegistry
from core.utils.timezone import local_today
from web.dependencies import get_db, get_db_write, get_schemas
from web.errors import http_error
from web.models.requests import BalanceCheckRequest, EntryAppendRequest, LedgerOpenRequest
from web.models.responses import (
    ActivePharmacistResponse,
    BalanceCheckResponse,
    BalanceReportResponse,
    EntryListResponse,
    EntryResponse,
    GridResponse,
    GridRowResponse,
    IntegrityResponse,
    LedgerResponse,
)

router = APIRouter(prefix="/api/ledgers", tags=["Ledgers"])


@router.post("", response_model=LedgerResponse)
async def open_ledger(
    request: LedgerOpenRequest,
    db: SQLiteAdapter = Depends(get_db_write),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> LedgerResponse:
    """Get or create the ledger of a subject

    Idempotent: the same subject always returns the same ledger.
    """
    service = RegisterService(db, schemas)

    try:
        ledger = await service.open_ledger(
            register_type=request.register_type,
            subject_key=request.subject_key,
            metadata=request.metadata,
            created_by=request.created_by,
        )
    except RegisterError as e:
        raise http_error(e) from e

    return LedgerResponse.from_ledger(ledger)


@router.get("", response_model=list[LedgerResponse])
async def list_ledgers(
    register_type: str | None = Query(default=None, description="Filter by register type"),
    active_only: bool = Query(default=True, description="Only active ledgers"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> list[LedgerResponse]:
    """List ledgers"""
    service = RegisterService(db, schemas)
    ledgers = await service.list_ledgers(register_type, active_only)
    return [LedgerResponse.from_ledger(ledger) for ledger in ledgers]


@router.get("/{ledger_id}", response_model=LedgerResponse)
async def get_ledger(
    ledger_id: str = Path(..., description="Ledger ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> LedgerResponse:
    """Ledger with its current lock_version"""
    service = RegisterService(db, schemas)

    try:
        ledger = await service.get_ledger(ledger_id)
    except RegisterError as e:
        raise http_error(e) from e

    return LedgerResponse.from_ledger(ledger)


@router.post("/{ledger_id}/entries", response_model=EntryResponse, status_code=201)
async def append_entry(
    request: EntryAppendRequest,
    ledger_id: str = Path(..., description="Ledger ID"),
    db: SQLiteAdapter = Depends(get_db_write),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> EntryResponse:
    """Append an entry

    Uses an optimistic lock: expected_lock_version must equal the ledger's
    current version. On 409 refetch the ledger and resubmit.
    """
    service = RegisterService(db, schemas)

    try:
        entry = await service.append_entry(
            ledger_id=ledger_id,
            register_type=request.register_type,
            entry_type=request.entry_type,
            date_of_transaction=request.date_of_transaction,
            payload=request.payload,
            expected_lock_version=request.expected_lock_version,
            entered_by=request.entered_by,
            source=request.source,
            corrects_entry_id=request.corrects_entry_id,
            correction_reason=request.correction_reason,
            authorised_by=request.authorised_by,
        )
    except RegisterError as e:
        raise http_error(e) from e

    return EntryResponse.from_entry(entry)


@router.get("/{ledger_id}/entries", response_model=EntryListResponse)
async def list_entries(
    ledger_id: str = Path(..., description="Ledger ID"),
    q: str | None = Query(default=None, description="Case-insensitive search text"),
    limit: int = Query(default=Defaults.SEARCH_LIMIT, ge=1, le=Defaults.SEARCH_LIMIT, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Entries to skip"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> EntryListResponse:
    """Raw entries (corrections included) ordered by entry_number

    Paged with limit/offset; total counts every matching entry.
    """
    service = RegisterService(db, schemas)

    try:
        ledger = await service.get_ledger(ledger_id)
        entries = await service.search_entries(ledger_id, q)
    except RegisterError as e:
        raise http_error(e) from e

    return EntryListResponse(
        ledger_id=ledger_id,
        lock_version=ledger.lock_version,
        total=len(entries),
        limit=limit,
        offset=offset,
        entries=[EntryResponse.from_entry(entry) for entry in entries[offset : offset + limit]],
    )


@router.get("/{ledger_id}/grid", response_model=GridResponse)
async def get_grid(
    ledger_id: str = Path(..., description="Ledger ID"),
    start: date = Query(..., description="First date (inclusive)"),
    end: date = Query(..., description="Last date (inclusive)"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> GridResponse:
    """Effective entry for every date of a period"""
    service = RegisterService(db, schemas)

    try:
        rows = await service.build_period_grid(ledger_id, start, end)
    except RegisterError as e:
        raise http_error(e) from e

    return GridResponse(
        ledger_id=ledger_id,
        start=start,
        end=end,
        rows=[GridRowResponse.from_row(row) for row in rows],
    )


@router.get("/{ledger_id}/balance", response_model=BalanceReportResponse)
async def get_balance(
    ledger_id: str = Path(..., description="Ledger ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> BalanceReportResponse:
    """Recompute the running balance"""
    service = RegisterService(db, schemas)

    try:
        report = await service.recompute_balance(ledger_id)
    except RegisterError as e:
        raise http_error(e) from e

    return BalanceReportResponse.from_report(report)


@router.post("/{ledger_id}/balance-checks", response_model=BalanceCheckResponse)
async def check_balance(
    request: BalanceCheckRequest,
    ledger_id: str = Path(..., description="Ledger ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> BalanceCheckResponse:
    """Compare a physical count with the balance"""
    service = RegisterService(db, schemas)

    try:
        check = await service.check_balance(ledger_id, request.counted)
    except RegisterError as e:
        raise http_error(e) from e

    return BalanceCheckResponse.from_check(check)


@router.get("/{ledger_id}/integrity", response_model=IntegrityResponse)
async def verify_ledger(
    ledger_id: str = Path(..., description="Ledger ID"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> IntegrityResponse:
    """Verify the stored invariants of a ledger"""
    service = RegisterService(db, schemas)

    try:
        report = await service.verify_ledger(ledger_id)
    except RegisterError as e:
        raise http_error(e) from e

    return IntegrityResponse.from_report(report)


@router.get("/{ledger_id}/active-pharmacist", response_model=ActivePharmacistResponse)
async def get_active_pharmacist(
    ledger_id: str = Path(..., description="RP ledger ID"),
    on: date | None = Query(default=None, description="Date (default: today, local time)"),
    db: SQLiteAdapter = Depends(get_db),
    schemas: SchemaRegistry = Depends(get_schemas),
) -> ActivePharmacistResponse:
    """Responsible pharmacist signed in on a date"""
    service = RegisterService(db, schemas)
    on = on or local_today()

    try:
        active = await service.active_pharmacist(ledger_id, on)
    except RegisterError as e:
        raise http_error(e) from e

    return ActivePharmacistResponse.from_active(on, active)
