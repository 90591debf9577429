"""
Balance engine

Recomputes the running balance of a quantity-bearing ledger from its
effective entries (corrections applied, superseded values ignored).
Ordering: the normal entry's date_of_transaction, then its entry_number.

Fail-soft: an entry whose quantity or direction is missing or malformed
is reported in BalanceReport.errors and excluded from the total; the rest
of the ledger is still summed.

Usage:
```python
engine = BalanceEngine(db, schemas)
report = await engine.recompute(ledger_id)
check = await engine.check(ledger_id, counted=Decimal("95"))
```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Iterable

from core.register.errors import ValidationError
from core.register.registry import LedgerRegistry
from core.register.resolver import ResolvedChain, resolve_chains
from core.register.schema import BalanceRule, SchemaRegistry
from core.register.store import EntryStore
from core.register.types import LedgerEntry
from core.types import BalanceCheckStatus

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceRow:
    date: date
    entry_number: int
    entry_id: str
    delta: Decimal
    balance_after: Decimal


@dataclass(frozen=True)
class EntryBalanceError:
    """An effective entry excluded from the balance"""

    entry_id: str
    entry_number: int
    error: ValidationError

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass
class BalanceReport:
    ledger_id: str
    rows: list[BalanceRow] = field(default_factory=list)
    final_balance: Decimal = Decimal("0")
    errors: list[EntryBalanceError] = field(default_factory=list)


@dataclass(frozen=True)
class BalanceCheck:
    """Physical count compared with the recomputed balance"""

    ledger_id: str
    expected: Decimal
    counted: Decimal
    difference: Decimal  # counted - expected
    status: BalanceCheckStatus


def _decimal(payload: dict[str, Any], field_name: str) -> Decimal:
    raw = payload.get(field_name)
    if raw is None or (isinstance(raw, str) and not raw.strip()) or isinstance(raw, bool):
        raise ValidationError(f"{field_name}: missing quantity")
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ValidationError(f"{field_name}: malformed quantity {raw!r}") from None
    if not value.is_finite():
        raise ValidationError(f"{field_name}: malformed quantity {raw!r}")
    return value


def entry_delta(rule: BalanceRule, payload: dict[str, Any]) -> Decimal:
    """Signed quantity change of one entry

    Raises:
        ValidationError: missing/malformed quantity or unknown direction
    """
    if not rule.is_directional:
        assert rule.quantity_field is not None
        return _decimal(payload, rule.quantity_field)

    assert rule.direction_field is not None
    direction = payload.get(rule.direction_field)
    if direction in rule.inbound:
        assert rule.inbound_quantity_field is not None
        return abs(_decimal(payload, rule.inbound_quantity_field))
    if direction in rule.outbound:
        assert rule.outbound_quantity_field is not None
        return -abs(_decimal(payload, rule.outbound_quantity_field))
    raise ValidationError(
        f"{rule.direction_field}: cannot determine direction from {direction!r}"
    )


def _balance_order(chain: ResolvedChain) -> tuple[date, int]:
    return (chain.record_date, chain.original.entry_number)


def compute_balance(
    ledger_id: str,
    rule: BalanceRule,
    entries: Iterable[LedgerEntry],
) -> BalanceReport:
    """Running balance over the effective entries (pure)"""
    report = BalanceReport(ledger_id=ledger_id)
    balance = Decimal("0")

    for chain in sorted(resolve_chains(entries), key=_balance_order):
        effective = chain.effective
        try:
            delta = entry_delta(rule, effective.payload)
        except ValidationError as e:
            report.errors.append(
                EntryBalanceError(
                    entry_id=effective.entry_id,
                    entry_number=effective.entry_number,
                    error=e,
                )
            )
            continue

        balance += delta
        report.rows.append(
            BalanceRow(
                date=chain.record_date,
                entry_number=effective.entry_number,
                entry_id=effective.entry_id,
                delta=delta,
                balance_after=balance,
            )
        )

    report.final_balance = balance
    return report


class BalanceEngine:
    """Balance engine

    Args:
        db: SQLite adapter
        schemas: register schemas (balance rules)
    """

    def __init__(self, db: SQLiteAdapter, schemas: SchemaRegistry):
        self.schemas = schemas
        self.registry = LedgerRegistry(db, schemas)
        self.store = EntryStore(db)

    async def recompute(self, ledger_id: str) -> BalanceReport:
        """Recompute the running balance of a ledger

        Raises:
            NotFoundError: unknown ledger
            ValidationError: register type has no balance rule
        """
        ledger = await self.registry.get(ledger_id)
        rule = self.schemas.get(ledger.register_type).balance
        if rule is None:
            raise ValidationError(
                f"register {ledger.register_type} has no balance rule"
            )

        report = compute_balance(ledger_id, rule, await self.store.list(ledger_id))

        if report.errors:
            logger.warning(
                f"Balance recomputed with {len(report.errors)} excluded entries",
                extra={
                    "ledger_id": ledger_id,
                    "excluded": [error.entry_id for error in report.errors],
                },
            )
        return report

    async def check(self, ledger_id: str, counted: Decimal | int | str) -> BalanceCheck:
        """Compare a physical stock count with the recomputed balance

        Raises:
            ValidationError: counted is not a number, or no balance rule
        """
        try:
            counted = Decimal(str(counted))
        except InvalidOperation:
            raise ValidationError(f"counted: not a number: {counted!r}") from None
        if not counted.is_finite():
            raise ValidationError(f"counted: not a number: {counted!r}")

        report = await self.recompute(ledger_id)
        difference = counted - report.final_balance
        status = (
            BalanceCheckStatus.MATCHED if difference == 0 else BalanceCheckStatus.DISCREPANCY
        )

        logger.info(
            f"Balance check: {status.value}",
            extra={
                "ledger_id": ledger_id,
                "expected": str(report.final_balance),
                "counted": str(counted),
            },
        )
        return BalanceCheck(
            ledger_id=ledger_id,
            expected=report.final_balance,
            counted=counted,
            difference=difference,
            status=status,
        )
