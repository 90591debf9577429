"""
RegisterService integration tests

End-to-end flows over a real database: CD balance with corrections, RP
grid and active pharmacist, edit history and integrity verification.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from core.register import (
    ConflictError,
    Ledger,
    NotFoundError,
    RegisterService,
    ValidationError,
)
from core.types import BalanceCheckStatus


def rp_payload(name: str, signed_out: str | None = None) -> dict:
    payload = {
        "pharmacist_name": name,
        "gphc_number": "2045123",
        "rp_signed_in_at": "2024-03-01T08:55:00Z",
    }
    if signed_out:
        payload["rp_signed_out_at"] = signed_out
    return payload


@pytest_asyncio.fixture
async def cd_ledger(service: RegisterService) -> Ledger:
    return await service.open_ledger(
        "CD", "morphine-10mg", metadata={"drug_name": "Morphine sulfate"}, created_by="admin"
    )


@pytest_asyncio.fixture
async def rp_ledger(service: RegisterService) -> Ledger:
    return await service.open_ledger("RP")


class TestCdFlow:
    """Controlled drug register with corrections"""

    @pytest.mark.asyncio
    async def test_balance_after_correction(
        self, service: RegisterService, cd_ledger: Ledger
    ) -> None:
        ledger_id = cd_ledger.ledger_id
        await service.append_entry(
            ledger_id=ledger_id,
            register_type="CD",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload={"transaction_type": "receipt", "quantity_received": "10"},
            expected_lock_version=0,
            entered_by="a.patel",
        )
        supply = await service.append_entry(
            ledger_id=ledger_id,
            register_type="CD",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 2),
            payload={
                "transaction_type": "supply",
                "quantity_deducted": "3",
                "patient_name": "John Smith",
                "prescriber_name": "Dr. Jones",
            },
            expected_lock_version=1,
            entered_by="a.patel",
        )
        await service.append_entry(
            ledger_id=ledger_id,
            register_type="CD",
            entry_type="correction",
            date_of_transaction=date(2024, 3, 2),
            payload={
                "transaction_type": "supply",
                "quantity_deducted": "5",
                "patient_name": "John Smith",
                "prescriber_name": "Dr. Jones",
            },
            expected_lock_version=2,
            entered_by="b.khan",
            corrects_entry_id=supply.entry_id,
            correction_reason="quantity misread from prescription",
        )

        report = await service.recompute_balance(ledger_id)

        assert report.final_balance == Decimal("5")
        assert [row.delta for row in report.rows] == [Decimal("10"), Decimal("-5")]

        # Raw listing keeps every row
        entries = await service.list_entries(ledger_id)
        assert [entry.entry_number for entry in entries] == [1, 2, 3]

        history = await service.get_history(supply.entry_id)
        assert [step.edited_by for step in history.steps] == ["a.patel", "b.khan"]
        assert history.steps[1].reason == "quantity misread from prescription"

        check = await service.check_balance(ledger_id, "4")
        assert check.status == BalanceCheckStatus.DISCREPANCY
        assert check.difference == Decimal("-1")

        report = await service.verify_ledger(ledger_id)
        assert report.ok
        assert report.lock_version == 3

    @pytest.mark.asyncio
    async def test_stale_version(self, service: RegisterService, cd_ledger: Ledger) -> None:
        kwargs = dict(
            ledger_id=cd_ledger.ledger_id,
            register_type="CD",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload={"transaction_type": "receipt", "quantity_received": "10"},
            expected_lock_version=0,
            entered_by="a.patel",
        )
        await service.append_entry(**kwargs)

        with pytest.raises(ConflictError):
            await service.append_entry(**kwargs)

        ledger = await service.get_ledger(cd_ledger.ledger_id)
        assert ledger.lock_version == 1

    @pytest.mark.asyncio
    async def test_balance_check_matched(
        self, service: RegisterService, cd_ledger: Ledger
    ) -> None:
        await service.append_entry(
            ledger_id=cd_ledger.ledger_id,
            register_type="CD",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload={"transaction_type": "receipt", "quantity_received": "20"},
            expected_lock_version=0,
            entered_by="a.patel",
        )

        check = await service.check_balance(cd_ledger.ledger_id, 20)

        assert check.status == BalanceCheckStatus.MATCHED
        assert check.difference == Decimal("0")

    @pytest.mark.asyncio
    async def test_balance_check_not_a_number(
        self, service: RegisterService, cd_ledger: Ledger
    ) -> None:
        with pytest.raises(ValidationError, match="counted"):
            await service.check_balance(cd_ledger.ledger_id, "lots")

    @pytest.mark.asyncio
    async def test_search(self, service: RegisterService, cd_ledger: Ledger) -> None:
        await service.append_entry(
            ledger_id=cd_ledger.ledger_id,
            register_type="CD",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload={
                "transaction_type": "receipt",
                "quantity_received": "20",
                "supplier_name": "Alliance",
            },
            expected_lock_version=0,
            entered_by="a.patel",
        )

        assert len(await service.search_entries(cd_ledger.ledger_id, "alliance")) == 1
        assert await service.search_entries(cd_ledger.ledger_id, "phoenix") == []

    @pytest.mark.asyncio
    async def test_unknown_ledger(self, service: RegisterService) -> None:
        with pytest.raises(NotFoundError):
            await service.list_entries("missing")


class TestRpFlow:
    """Responsible pharmacist log"""

    @pytest.mark.asyncio
    async def test_grid_and_active_pharmacist(
        self, service: RegisterService, rp_ledger: Ledger
    ) -> None:
        ledger_id = rp_ledger.ledger_id
        entry = await service.append_entry(
            ledger_id=ledger_id,
            register_type="RP",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 3),
            payload=rp_payload("A. Patel"),
            expected_lock_version=0,
            entered_by="a.patel",
        )

        grid = await service.build_period_grid(ledger_id, date(2024, 3, 1), date(2024, 3, 7))

        assert len(grid) == 7
        assert [row.date for row in grid if not row.is_empty] == [date(2024, 3, 3)]
        assert grid[2].effective_entry.entry_id == entry.entry_id

        active = await service.active_pharmacist(ledger_id, date(2024, 3, 3))
        assert active is not None
        assert active.pharmacist_name == "A. Patel"

        # Sign-out recorded as a correction of the sign-in
        await service.append_entry(
            ledger_id=ledger_id,
            register_type="RP",
            entry_type="correction",
            date_of_transaction=date(2024, 3, 3),
            payload=rp_payload("A. Patel", signed_out="2024-03-03T18:00:00Z"),
            expected_lock_version=1,
            entered_by="a.patel",
            corrects_entry_id=entry.entry_id,
            correction_reason="sign-out recorded",
        )

        assert await service.active_pharmacist(ledger_id, date(2024, 3, 3)) is None

    @pytest.mark.asyncio
    async def test_active_pharmacist_defaults_to_today(
        self, service: RegisterService, rp_ledger: Ledger, clock
    ) -> None:
        await service.append_entry(
            ledger_id=rp_ledger.ledger_id,
            register_type="RP",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload=rp_payload("A. Patel"),
            expected_lock_version=0,
            entered_by="a.patel",
        )
        clock.set(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))

        active = await service.active_pharmacist(rp_ledger.ledger_id)

        assert active is not None

    @pytest.mark.asyncio
    async def test_active_pharmacist_requires_rp(
        self, service: RegisterService, cd_ledger: Ledger
    ) -> None:
        with pytest.raises(ValidationError, match="not RP"):
            await service.active_pharmacist(cd_ledger.ledger_id, date(2024, 3, 1))

    @pytest.mark.asyncio
    async def test_grid_invalid_range(self, service: RegisterService, rp_ledger: Ledger) -> None:
        with pytest.raises(ValidationError, match="start"):
            await service.build_period_grid(
                rp_ledger.ledger_id, date(2024, 3, 7), date(2024, 3, 1)
            )

    @pytest.mark.asyncio
    async def test_rp_has_no_balance(self, service: RegisterService, rp_ledger: Ledger) -> None:
        with pytest.raises(ValidationError, match="balance rule"):
            await service.recompute_balance(rp_ledger.ledger_id)

    @pytest.mark.asyncio
    async def test_annotations(self, service: RegisterService, rp_ledger: Ledger) -> None:
        entry = await service.append_entry(
            ledger_id=rp_ledger.ledger_id,
            register_type="RP",
            entry_type="normal",
            date_of_transaction=date(2024, 3, 1),
            payload=rp_payload("A. Patel"),
            expected_lock_version=0,
            entered_by="a.patel",
        )

        await service.annotate(entry.entry_id, "query", "GPhC number checked?", "auditor")

        annotations = await service.list_annotations(entry.entry_id)
        assert [a.annotation_type for a in annotations] == ["query"]
        assert (await service.get_ledger(rp_ledger.ledger_id)).lock_version == 1
