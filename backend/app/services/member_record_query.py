"""
Member Record Query - listing, filtering and dashboard stats for the ledger

Listings are ordered so the most urgent rows come first:
    0 - subscription already expired
    1 - subscription ending within EXPIRING_SOON_DAYS (inclusive)
    2 - everything else
then by created_at ascending. sr_no is a 1-based position in that order,
recomputed on every fetch.

Stats always describe the whole table, never the current search/filter.
"""
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Union

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.member_record import MemberRecord
from app.services.installment_ledger import CENTS, parse_amount


class SubscriptionStatus(str, Enum):
    NONE = "none"
    EXPIRED = "expired"
    EXPIRING = "expiring"
    ACTIVE = "active"


class MemberRecordFilter(str, Enum):
    ALL = "all"
    SIGNED_UP = "signed-up"
    NOT_SIGNED_UP = "not-signed-up"
    PENDING_PAYMENT = "pending-payment"
    FULLY_PAID = "fully-paid"
    ACTIVE_SUBSCRIPTION = "active-subscription"
    EXPIRED_SUBSCRIPTION = "expired-subscription"
    NO_SUBSCRIPTION = "no-subscription"
    EXPIRING_SOON = "expiring-soon"


@dataclass
class MemberRecordView:
    record: MemberRecord
    sr_no: int
    subscription_status: SubscriptionStatus


def _expiry_horizon(today: date) -> date:
    return today + timedelta(days=settings.EXPIRING_SOON_DAYS)


def subscription_status(end_date: Optional[date], today: Optional[date] = None) -> SubscriptionStatus:
    """First match wins: none, expired, expiring, active."""
    today = today or date.today()
    if end_date is None:
        return SubscriptionStatus.NONE
    if end_date < today:
        return SubscriptionStatus.EXPIRED
    if end_date <= _expiry_horizon(today):
        return SubscriptionStatus.EXPIRING
    return SubscriptionStatus.ACTIVE


# ============================================================================
# PREDICATES
# ============================================================================

def _predicates(today: date) -> Dict[MemberRecordFilter, object]:
    end = MemberRecord.membership_end_date
    remaining = MemberRecord.remaining_amount
    return {
        MemberRecordFilter.SIGNED_UP: MemberRecord.is_signed_up.is_(True),
        MemberRecordFilter.NOT_SIGNED_UP: MemberRecord.is_signed_up.is_(False),
        MemberRecordFilter.PENDING_PAYMENT: remaining > 0,
        MemberRecordFilter.FULLY_PAID: and_(MemberRecord.plan_total_amount > 0, remaining <= 0),
        MemberRecordFilter.ACTIVE_SUBSCRIPTION: end >= today,
        MemberRecordFilter.EXPIRED_SUBSCRIPTION: end < today,
        MemberRecordFilter.NO_SUBSCRIPTION: and_(
            end.is_(None),
            or_(MemberRecord.plan_name.is_(None), MemberRecord.plan_name == ""),
        ),
        MemberRecordFilter.EXPIRING_SOON: and_(end >= today, end <= _expiry_horizon(today)),
    }


def filter_clause(record_filter: Union[MemberRecordFilter, str], today: Optional[date] = None):
    """SQL predicate for a listing filter; None for ``all``."""
    record_filter = MemberRecordFilter(record_filter)
    if record_filter == MemberRecordFilter.ALL:
        return None
    return _predicates(today or date.today())[record_filter]


def priority_expression(today: date):
    end = MemberRecord.membership_end_date
    return case(
        (end < today, 0),
        (and_(end >= today, end <= _expiry_horizon(today)), 1),
        else_=2,
    )


# ============================================================================
# LISTING
# ============================================================================

def list_member_records(
    db: Session,
    search: Optional[str] = None,
    record_filter: Union[MemberRecordFilter, str] = MemberRecordFilter.ALL,
    today: Optional[date] = None,
) -> List[MemberRecordView]:
    """
    Ledger rows matching a search term and filter, most urgent first.

    Args:
        search: Case-insensitive substring of name, email or phone
        record_filter: One of MemberRecordFilter
        today: Reference date (defaults to the current date)
    """
    today = today or date.today()
    query = db.query(MemberRecord)

    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(
            or_(
                MemberRecord.name.ilike(term),
                MemberRecord.email.ilike(term),
                MemberRecord.phone.ilike(term),
            )
        )

    clause = filter_clause(record_filter, today)
    if clause is not None:
        query = query.filter(clause)

    records = (
        query.order_by(priority_expression(today), MemberRecord.created_at, MemberRecord.id)
        .all()
    )
    return [
        MemberRecordView(
            record=record,
            sr_no=position,
            subscription_status=subscription_status(record.membership_end_date, today),
        )
        for position, record in enumerate(records, start=1)
    ]


# ============================================================================
# STATS
# ============================================================================

def _count_where(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _money(value) -> Decimal:
    return parse_amount(value).quantize(CENTS)


def get_member_record_stats(db: Session, today: Optional[date] = None) -> Dict[str, object]:
    """Counts per bucket plus revenue totals over the whole ledger."""
    today = today or date.today()
    p = _predicates(today)

    row = db.query(
        func.count(MemberRecord.id).label("total"),
        _count_where(p[MemberRecordFilter.SIGNED_UP]).label("signed_up"),
        _count_where(p[MemberRecordFilter.NOT_SIGNED_UP]).label("not_signed_up"),
        _count_where(p[MemberRecordFilter.PENDING_PAYMENT]).label("pending_payments"),
        _count_where(p[MemberRecordFilter.FULLY_PAID]).label("fully_paid"),
        _count_where(p[MemberRecordFilter.ACTIVE_SUBSCRIPTION]).label("active_subscriptions"),
        _count_where(p[MemberRecordFilter.EXPIRED_SUBSCRIPTION]).label("expired_subscriptions"),
        _count_where(p[MemberRecordFilter.NO_SUBSCRIPTION]).label("no_subscription"),
        _count_where(p[MemberRecordFilter.EXPIRING_SOON]).label("expiring_soon"),
        func.coalesce(func.sum(MemberRecord.plan_total_amount), 0).label("total_revenue"),
        func.coalesce(func.sum(MemberRecord.paid_amount), 0).label("collected_amount"),
        func.coalesce(func.sum(MemberRecord.remaining_amount), 0).label("pending_amount"),
    ).one()

    return {
        "total": int(row.total or 0),
        "signed_up": int(row.signed_up),
        "not_signed_up": int(row.not_signed_up),
        "pending_payments": int(row.pending_payments),
        "fully_paid": int(row.fully_paid),
        "active_subscriptions": int(row.active_subscriptions),
        "expired_subscriptions": int(row.expired_subscriptions),
        "no_subscription": int(row.no_subscription),
        "expiring_soon": int(row.expiring_soon),
        "total_revenue": _money(row.total_revenue),
        "collected_amount": _money(row.collected_amount),
        "pending_amount": _money(row.pending_amount),
    }
