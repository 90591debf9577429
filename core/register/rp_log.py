"""
Responsible pharmacist log helpers

Reads the RP register to answer "who is the responsible pharmacist right
now". Works on effective entries, so a corrected sign-out is honoured.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

from core.register.resolver import resolve_chains
from core.register.types import LedgerEntry

SIGNED_IN_FIELD = "rp_signed_in_at"
SIGNED_OUT_FIELD = "rp_signed_out_at"


@dataclass(frozen=True)
class ActivePharmacist:
    entry: LedgerEntry
    pharmacist_name: str
    gphc_number: str
    signed_in_at: datetime


def find_active_pharmacist(
    entries: Iterable[LedgerEntry],
    on: date,
) -> ActivePharmacist | None:
    """Most recent RP signed in and not yet signed out on a date

    Args:
        entries: entries of the RP ledger
        on: date of the sign-in records (normal entry date)

    Returns:
        ActivePharmacist or None when nobody is signed in
    """
    effective = sorted(
        (
            chain.effective
            for chain in resolve_chains(entries)
            if chain.record_date == on
        ),
        key=lambda entry: entry.order_key,
    )

    for entry in reversed(effective):
        payload = entry.payload
        if payload.get(SIGNED_IN_FIELD) and not payload.get(SIGNED_OUT_FIELD):
            return ActivePharmacist(
                entry=entry,
                pharmacist_name=payload.get("pharmacist_name", ""),
                gphc_number=payload.get("gphc_number", ""),
                signed_in_at=datetime.fromisoformat(payload[SIGNED_IN_FIELD]),
            )
    return None
