"""
Correction resolver

Pure functions that turn the raw, append-only entry list of a ledger into
the current truth:

- resolve_chains(): one chain per normal entry, with every correction that
  (directly or through a prior correction) supersedes it
- resolve_effective_records(): one effective record per date
- build_edit_history(): the edit trail of one logical record

A chain's effective entry is its latest entry by (entered_at,
entry_number), the normal entry included. A record stays on its normal
entry's date_of_transaction whatever date a correction carries. Nothing
here touches storage, so running it twice on the same input yields equal
output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from core.register.errors import NotFoundError
from core.register.types import LedgerEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedChain:
    """One logical record: the normal entry and its corrections in order"""

    original: LedgerEntry
    corrections: tuple[LedgerEntry, ...] = ()

    @property
    def effective(self) -> LedgerEntry:
        return max(self.history, key=lambda entry: entry.order_key)

    @property
    def record_date(self) -> date:
        """Date the record belongs to (the normal entry's)"""
        return self.original.date_of_transaction

    @property
    def history(self) -> tuple[LedgerEntry, ...]:
        return (self.original, *self.corrections)

    @property
    def entry_ids(self) -> set[str]:
        return {entry.entry_id for entry in self.history}

    @property
    def is_corrected(self) -> bool:
        return bool(self.corrections)


@dataclass(frozen=True)
class EffectiveRecord:
    """Winning chain for one date (other chains on that date in superseded)"""

    date: date
    chain: ResolvedChain
    superseded: tuple[ResolvedChain, ...] = ()

    @property
    def effective_entry(self) -> LedgerEntry:
        return self.chain.effective


@dataclass(frozen=True)
class EditStep:
    entry: LedgerEntry
    edited_by: str
    edited_at: datetime
    reason: str | None


@dataclass(frozen=True)
class EditHistory:
    """Original entry followed by each correction, oldest first"""

    root_entry_id: str
    steps: tuple[EditStep, ...]

    @property
    def effective(self) -> LedgerEntry:
        return max((step.entry for step in self.steps), key=lambda entry: entry.order_key)


def _find_root(
    entry: LedgerEntry,
    by_id: dict[str, LedgerEntry],
) -> LedgerEntry | None:
    """Normal entry at the start of a correction's chain (None: orphan)"""
    visited: set[str] = set()
    current = entry
    while current.is_correction:
        if current.entry_id in visited:
            logger.warning(
                "Correction cycle detected",
                extra={"entry_id": entry.entry_id},
            )
            return None
        visited.add(current.entry_id)

        target = by_id.get(current.corrects_entry_id or "")
        if target is None:
            return None
        current = target
    return current


def resolve_chains(entries: Iterable[LedgerEntry]) -> list[ResolvedChain]:
    """Group corrections under their root normal entry

    Args:
        entries: entries of one ledger (any order)

    Returns:
        One chain per normal entry, ordered by the normal entry's
        entry_number. Corrections inside a chain are sorted by
        (entered_at, entry_number). Corrections whose target is not in
        entries are skipped with a warning.
    """
    entries = list(entries)
    by_id = {entry.entry_id: entry for entry in entries}

    corrections_by_root: dict[str, list[LedgerEntry]] = {}
    for entry in entries:
        if not entry.is_correction:
            continue
        root = _find_root(entry, by_id)
        if root is None:
            logger.warning(
                f"Orphan correction skipped: #{entry.entry_number}",
                extra={
                    "entry_id": entry.entry_id,
                    "corrects_entry_id": entry.corrects_entry_id,
                },
            )
            continue
        corrections_by_root.setdefault(root.entry_id, []).append(entry)

    originals = sorted(
        (entry for entry in entries if not entry.is_correction),
        key=lambda entry: entry.entry_number,
    )
    return [
        ResolvedChain(
            original=original,
            corrections=tuple(
                sorted(
                    corrections_by_root.get(original.entry_id, []),
                    key=lambda entry: entry.order_key,
                )
            ),
        )
        for original in originals
    ]


def resolve_effective_records(entries: Iterable[LedgerEntry]) -> list[EffectiveRecord]:
    """One effective record per date

    Chains are grouped by their normal entry's date_of_transaction; a
    correction carrying another date does not move the record. When several
    chains share a date, the one whose effective entry is latest by
    (entered_at, entry_number) wins.

    Returns:
        Records ordered by date
    """
    by_date: dict[date, list[ResolvedChain]] = {}
    for chain in resolve_chains(entries):
        by_date.setdefault(chain.record_date, []).append(chain)

    records = []
    for day in sorted(by_date):
        chains = sorted(by_date[day], key=lambda chain: chain.effective.order_key)
        records.append(
            EffectiveRecord(
                date=day,
                chain=chains[-1],
                superseded=tuple(chains[:-1]),
            )
        )
    return records


def build_edit_history(entries: Iterable[LedgerEntry], entry_id: str) -> EditHistory:
    """Edit trail of the logical record containing entry_id

    Args:
        entries: entries of the ledger
        entry_id: any entry of the chain (normal entry or a correction)

    Raises:
        NotFoundError: entry_id not in entries, or an orphan correction
    """
    for chain in resolve_chains(entries):
        if entry_id in chain.entry_ids:
            return EditHistory(
                root_entry_id=chain.original.entry_id,
                steps=tuple(
                    EditStep(
                        entry=entry,
                        edited_by=entry.entered_by,
                        edited_at=entry.entered_at,
                        reason=entry.correction_reason,
                    )
                    for entry in chain.history
                ),
            )
    raise NotFoundError("entry", entry_id, "no resolvable chain")
