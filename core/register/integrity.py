"""
Ledger integrity verification

Recomputes the storage invariants of a ledger from its rows:

- entry numbers are exactly {1..N}
- lock_version == N
- every correction references an earlier entry of the same ledger and
  carries a non-blank reason
- normal entries carry no correction fields

Violations are reported, never raised, so an operator can list every
problem of a damaged database in one pass.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.register.registry import LedgerRegistry
from core.register.store import EntryStore
from core.register.types import Ledger, LedgerEntry

logger = logging.getLogger(__name__)


@dataclass
class IntegrityReport:
    ledger_id: str
    entry_count: int
    lock_version: int
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def verify_entries(ledger: Ledger, entries: list[LedgerEntry]) -> IntegrityReport:
    """Check a ledger row against its entry rows (pure)"""
    report = IntegrityReport(
        ledger_id=ledger.ledger_id,
        entry_count=len(entries),
        lock_version=ledger.lock_version,
    )

    numbers = sorted(entry.entry_number for entry in entries)
    if numbers != list(range(1, len(entries) + 1)):
        report.issues.append(
            f"entry numbers are not contiguous from 1: {numbers}"
        )

    if ledger.lock_version != len(entries):
        report.issues.append(
            f"lock_version {ledger.lock_version} != entry count {len(entries)}"
        )

    by_id = {entry.entry_id: entry for entry in entries}
    for entry in entries:
        label = f"entry #{entry.entry_number} ({entry.entry_id})"
        if entry.ledger_id != ledger.ledger_id:
            report.issues.append(f"{label}: belongs to ledger {entry.ledger_id}")

        if not entry.is_correction:
            if entry.corrects_entry_id or entry.correction_reason:
                report.issues.append(f"{label}: normal entry carries correction fields")
            continue

        if not (entry.correction_reason or "").strip():
            report.issues.append(f"{label}: correction without a reason")

        target = by_id.get(entry.corrects_entry_id or "")
        if target is None:
            report.issues.append(
                f"{label}: corrects {entry.corrects_entry_id}, not an entry of this ledger"
            )
        elif target.entry_number >= entry.entry_number:
            report.issues.append(
                f"{label}: corrects later entry #{target.entry_number}"
            )

    return report


async def verify_ledger(
    registry: LedgerRegistry,
    store: EntryStore,
    ledger_id: str,
) -> IntegrityReport:
    """Load a ledger and its entries and verify them

    Raises:
        NotFoundError: unknown ledger
    """
    ledger = await registry.get(ledger_id)
    report = verify_entries(ledger, await store.list(ledger_id))

    if report.ok:
        logger.info("Ledger integrity verified", extra={"ledger_id": ledger_id})
    else:
        logger.error(
            f"Ledger integrity violations: {len(report.issues)}",
            extra={"ledger_id": ledger_id, "issues": report.issues},
        )
    return report
