"""
Unit tests for the installment ledger

Covers:
- paid_amount recomputed from the installment log on every change
- remaining_amount derived (and allowed to go negative)
- id generation without collisions
- not-found and validation errors
"""
from datetime import datetime
from decimal import Decimal

import pytest

from app.exceptions import NotFoundError, ValidationError
from app.services.installment_ledger import (
    InstallmentLedger,
    build_installment,
    format_amount,
    next_installment_id,
    parse_amount,
    sum_installments,
)
from tests.factories import create_test_member_record, make_installment

FIXED_NOW = datetime(2026, 3, 1, 9, 30, 0)


@pytest.fixture
def ledger(db_session):
    return InstallmentLedger(db_session, clock=lambda: FIXED_NOW)


class TestAmountHelpers:
    def test_parse_amount_handles_strings_numbers_and_garbage(self):
        assert parse_amount("1500.50") == Decimal("1500.50")
        assert parse_amount(200) == Decimal("200")
        assert parse_amount(None) == Decimal("0")
        assert parse_amount("") == Decimal("0")
        assert parse_amount("abc") == Decimal("0")

    def test_format_amount_uses_two_decimals(self):
        assert format_amount(Decimal("1500")) == "1500.00"
        assert format_amount("99.5") == "99.50"

    def test_sum_installments(self):
        installments = [make_installment(1, "1000.00"), make_installment(2, "250.50")]
        assert sum_installments(installments) == Decimal("1250.50")
        assert sum_installments([]) == Decimal("0.00")


class TestInstallmentIds:
    def test_uses_token_when_free(self):
        assert next_installment_id([], token=5000) == 5000

    def test_bumps_past_existing_ids(self):
        existing = [make_installment(5000, "10.00"), make_installment(5001, "10.00")]
        assert next_installment_id(existing, token=5000) == 5002

    def test_ignores_non_numeric_ids(self):
        existing = [make_installment("legacy", "10.00")]
        assert next_installment_id(existing, token=42) == 42

    def test_build_installment_defaults(self):
        installment = build_installment(7, Decimal("300"), paid_at=FIXED_NOW)
        assert installment == {
            "id": 7,
            "amount": "300.00",
            "payment_mode": "CASH",
            "notes": "",
            "paid_at": "2026-03-01T09:30:00",
        }

    def test_build_installment_records_admin(self):
        installment = build_installment(7, 1, recorded_by="admin-1", paid_at=FIXED_NOW)
        assert installment["recorded_by"] == "admin-1"


class TestAddInstallment:
    def test_appends_and_recomputes_paid(self, db_session, ledger):
        record = create_test_member_record(
            db_session,
            plan_total_amount=Decimal("6000"),
            installments=[make_installment(1, "2000.00")],
        )

        updated, installment = ledger.add_installment(record.id, Decimal("1500"), "upi", "second")

        assert installment["amount"] == "1500.00"
        assert installment["payment_mode"] == "upi"
        assert installment["notes"] == "second"
        assert installment["paid_at"] == FIXED_NOW.isoformat()
        assert len(updated.installments) == 2
        assert updated.paid_amount == Decimal("3500.00")
        assert updated.remaining_amount == Decimal("2500.00")
        assert updated.updated_at == FIXED_NOW

    def test_overpayment_goes_negative(self, db_session, ledger):
        record = create_test_member_record(db_session, plan_total_amount=Decimal("1000"))

        updated, _ = ledger.add_installment(record.id, "1200")

        assert updated.remaining_amount == Decimal("-200.00")

    @pytest.mark.parametrize("amount", [0, -5, "0", "abc", None])
    def test_rejects_non_positive_amounts(self, db_session, ledger, amount):
        record = create_test_member_record(db_session)

        with pytest.raises(ValidationError):
            ledger.add_installment(record.id, amount)

        assert record.installments == []

    def test_missing_record(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.add_installment(999, 100)

    def test_ids_unique_within_record(self, db_session, ledger):
        record = create_test_member_record(db_session)

        ledger.add_installment(record.id, 100)
        ledger.add_installment(record.id, 100)
        ledger.add_installment(record.id, 100)

        ids = [i["id"] for i in record.installments]
        assert len(set(ids)) == 3


class TestDeleteInstallment:
    def test_removes_and_recomputes(self, db_session, ledger):
        record = create_test_member_record(
            db_session,
            plan_total_amount=Decimal("6000"),
            installments=[make_installment(11, "2000.00"), make_installment(12, "1500.00")],
        )

        updated, removed = ledger.delete_installment(record.id, 11)

        assert removed["amount"] == "2000.00"
        assert [i["id"] for i in updated.installments] == [12]
        assert updated.paid_amount == Decimal("1500.00")
        assert updated.remaining_amount == Decimal("4500.00")

    def test_accepts_string_ids(self, db_session, ledger):
        record = create_test_member_record(db_session, installments=[make_installment(11, "10.00")])

        updated, _ = ledger.delete_installment(record.id, "11")

        assert updated.installments == []
        assert updated.paid_amount == Decimal("0.00")

    def test_unknown_installment_is_not_found(self, db_session, ledger):
        record = create_test_member_record(db_session, installments=[make_installment(11, "10.00")])

        with pytest.raises(NotFoundError) as exc:
            ledger.delete_installment(record.id, 99)

        assert exc.value.details["resource"] == "Payment installment"
        assert len(record.installments) == 1
        assert record.paid_amount == Decimal("10.00")


class TestClearInstallments:
    def test_clears_log_and_balance(self, db_session, ledger):
        record = create_test_member_record(
            db_session,
            plan_total_amount=Decimal("500"),
            installments=[make_installment(1, "100.00"), make_installment(2, "200.00")],
        )

        updated = ledger.clear_installments(record.id)

        assert updated.installments == []
        assert updated.paid_amount == Decimal("0.00")
        assert updated.remaining_amount == Decimal("500.00")
