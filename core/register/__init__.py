"""
Register ledger

Append-only, version-checked ledgers for regulated pharmacy registers
(CD, RP, returns, private CD, POM). Entries are never updated; mistakes
are fixed by correction entries, and the current truth is rebuilt from
the correction trail.

Usage:
```python
from core.register import RegisterService, load_register_schemas

service = RegisterService(db, load_register_schemas(path))

# Ledger per subject
ledger = await service.open_ledger("RP")

# Append against the version last seen
entry = await service.append_entry(
    ledger_id=ledger.ledger_id,
    register_type="RP",
    entry_type="normal",
    date_of_transaction=date(2024, 3, 1),
    payload={"pharmacist_name": "A. Patel", "gphc_number": "2045123",
             "rp_signed_in_at": "2024-03-01T08:55:00+00:00"},
    expected_lock_version=ledger.lock_version,
    entered_by="a.patel",
)

# Effective record per date
grid = await service.build_period_grid(ledger.ledger_id, start, end)
```
"""

from core.register.errors import (
    ConflictError,
    NotFoundError,
    RegisterConfigError,
    RegisterError,
    ValidationError,
)
from core.register.schema import (
    DEFAULT_REGISTER_DEFINITIONS,
    BalanceRule,
    FieldSpec,
    RegisterSchema,
    SchemaRegistry,
    SubjectKeyRule,
    load_register_schemas,
)
from core.register.types import EntryAnnotation, Ledger, LedgerEntry, Subject
from core.register.entries import CorrectionDraft, EntryDraft, NormalDraft, make_draft
from core.register.registry import LedgerRegistry
from core.register.store import EntryStore
from core.register.guard import ConcurrencyGuard
from core.register.resolver import (
    EditHistory,
    EditStep,
    EffectiveRecord,
    ResolvedChain,
    build_edit_history,
    resolve_chains,
    resolve_effective_records,
)
from core.register.balance import (
    BalanceCheck,
    BalanceEngine,
    BalanceReport,
    BalanceRow,
    compute_balance,
    entry_delta,
)
from core.register.grid import GridRow, PeriodGridBuilder, build_grid
from core.register.annotations import AnnotationStore
from core.register.rp_log import ActivePharmacist, find_active_pharmacist
from core.register.integrity import IntegrityReport, verify_entries, verify_ledger
from core.register.service import RegisterService

__all__ = [
    # Service
    "RegisterService",
    # Components
    "LedgerRegistry",
    "EntryStore",
    "ConcurrencyGuard",
    "BalanceEngine",
    "PeriodGridBuilder",
    "AnnotationStore",
    # Domain types
    "Subject",
    "Ledger",
    "LedgerEntry",
    "EntryAnnotation",
    "NormalDraft",
    "CorrectionDraft",
    "EntryDraft",
    "make_draft",
    # Resolution
    "ResolvedChain",
    "EffectiveRecord",
    "EditHistory",
    "EditStep",
    "resolve_chains",
    "resolve_effective_records",
    "build_edit_history",
    # Balance
    "BalanceReport",
    "BalanceRow",
    "BalanceCheck",
    "compute_balance",
    "entry_delta",
    # Grid
    "GridRow",
    "build_grid",
    # Supplements
    "ActivePharmacist",
    "find_active_pharmacist",
    "IntegrityReport",
    "verify_entries",
    "verify_ledger",
    # Schemas
    "FieldSpec",
    "BalanceRule",
    "RegisterSchema",
    "SchemaRegistry",
    "SubjectKeyRule",
    "DEFAULT_REGISTER_DEFINITIONS",
    "load_register_schemas",
    # Errors
    "RegisterError",
    "ConflictError",
    "ValidationError",
    "NotFoundError",
    "RegisterConfigError",
]
