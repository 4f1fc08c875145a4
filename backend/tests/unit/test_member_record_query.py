"""
Unit tests for member record listing, filters and stats
"""
from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.services.member_record_query import (
    MemberRecordFilter,
    SubscriptionStatus,
    get_member_record_stats,
    list_member_records,
    subscription_status,
)
from tests.factories import create_test_member_record, make_installment

TODAY = date(2026, 6, 15)


class TestSubscriptionStatus:
    @pytest.mark.parametrize("end_date,expected", [
        (None, SubscriptionStatus.NONE),
        (TODAY - timedelta(days=1), SubscriptionStatus.EXPIRED),
        (TODAY, SubscriptionStatus.EXPIRING),
        (TODAY + timedelta(days=7), SubscriptionStatus.EXPIRING),
        (TODAY + timedelta(days=8), SubscriptionStatus.ACTIVE),
    ])
    def test_derivation(self, end_date, expected):
        assert subscription_status(end_date, TODAY) == expected


@pytest.fixture
def ledger_rows(db_session):
    """One row per interesting bucket"""
    rows = {
        "active": create_test_member_record(
            db_session, name="Active Paid", email="active@example.com", phone="9000000001",
            plan_name="Gold", plan_total_amount=Decimal("1000"),
            installments=[make_installment(1, "1000.00")],
            membership_end_date=TODAY + timedelta(days=30),
        ),
        "expiring": create_test_member_record(
            db_session, name="Expiring Soon", plan_name="Gold", plan_total_amount=Decimal("6000"),
            installments=[make_installment(1, "3500.00")],
            membership_end_date=TODAY + timedelta(days=3),
        ),
        "expired": create_test_member_record(
            db_session, name="Lapsed", plan_name="Silver", plan_total_amount=Decimal("500"),
            installments=[make_installment(1, "700.00")],
            membership_end_date=TODAY - timedelta(days=1),
            is_signed_up=True, email="lapsed@example.com",
        ),
        "none": create_test_member_record(db_session, name="Walk In"),
    }
    db_session.commit()
    return rows


class TestListing:
    def test_urgent_rows_first_with_sequential_sr_no(self, db_session, ledger_rows):
        views = list_member_records(db_session, today=TODAY)

        assert [v.record.name for v in views] == ["Lapsed", "Expiring Soon", "Active Paid", "Walk In"]
        assert [v.sr_no for v in views] == [1, 2, 3, 4]
        assert [v.subscription_status for v in views] == [
            SubscriptionStatus.EXPIRED,
            SubscriptionStatus.EXPIRING,
            SubscriptionStatus.ACTIVE,
            SubscriptionStatus.NONE,
        ]

    def test_created_at_breaks_ties(self, db_session):
        first = create_test_member_record(db_session, name="First")
        second = create_test_member_record(db_session, name="Second")
        second.created_at = first.created_at - timedelta(minutes=5)
        db_session.commit()

        views = list_member_records(db_session, today=TODAY)

        assert [v.record.name for v in views] == ["Second", "First"]

    def test_search_matches_name_email_phone(self, db_session, ledger_rows):
        assert [v.record.name for v in list_member_records(db_session, search="lapsed", today=TODAY)] == ["Lapsed"]
        assert [v.record.name for v in list_member_records(db_session, search="ACTIVE@", today=TODAY)] == ["Active Paid"]
        assert [v.record.name for v in list_member_records(db_session, search="90000", today=TODAY)] == ["Active Paid"]

    def test_sr_no_restarts_for_filtered_views(self, db_session, ledger_rows):
        views = list_member_records(db_session, record_filter="pending-payment", today=TODAY)

        assert [(v.sr_no, v.record.name) for v in views] == [(1, "Expiring Soon")]

    @pytest.mark.parametrize("record_filter,expected", [
        ("all", {"Active Paid", "Expiring Soon", "Lapsed", "Walk In"}),
        ("signed-up", {"Lapsed"}),
        ("not-signed-up", {"Active Paid", "Expiring Soon", "Walk In"}),
        ("pending-payment", {"Expiring Soon"}),
        ("fully-paid", {"Active Paid", "Lapsed"}),
        ("active-subscription", {"Active Paid", "Expiring Soon"}),
        ("expired-subscription", {"Lapsed"}),
        ("no-subscription", {"Walk In"}),
        ("expiring-soon", {"Expiring Soon"}),
    ])
    def test_filters(self, db_session, ledger_rows, record_filter, expected):
        views = list_member_records(db_session, record_filter=record_filter, today=TODAY)
        assert {v.record.name for v in views} == expected

    def test_unknown_filter_rejected(self, db_session):
        with pytest.raises(ValueError):
            list_member_records(db_session, record_filter="vip")

    def test_accepts_enum_filter(self, db_session, ledger_rows):
        views = list_member_records(db_session, record_filter=MemberRecordFilter.EXPIRED_SUBSCRIPTION, today=TODAY)
        assert [v.record.name for v in views] == ["Lapsed"]


class TestStats:
    def test_stats_over_whole_table(self, db_session, ledger_rows):
        stats = get_member_record_stats(db_session, today=TODAY)

        assert stats == {
            "total": 4,
            "signed_up": 1,
            "not_signed_up": 3,
            "pending_payments": 1,
            "fully_paid": 2,
            "active_subscriptions": 2,
            "expired_subscriptions": 1,
            "no_subscription": 1,
            "expiring_soon": 1,
            "total_revenue": Decimal("7500.00"),
            "collected_amount": Decimal("5200.00"),
            "pending_amount": Decimal("2300.00"),
        }

    def test_empty_ledger(self, db_session):
        stats = get_member_record_stats(db_session, today=TODAY)

        assert stats["total"] == 0
        assert stats["signed_up"] == 0
        assert stats["total_revenue"] == Decimal("0.00")
        assert stats["pending_amount"] == Decimal("0.00")
