"""
Test data factories for FitSense.

Provides functions to create test entities with sensible defaults.

Usage:
    from tests.factories import create_test_user, create_test_member_record

    def test_something(db_session):
        user = create_test_user(db_session, email="test@example.com")
        record = create_test_member_record(db_session, name="Walk-in")
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session


# =============================================================================
# SEQUENCE MANAGEMENT
# =============================================================================

_sequences: Dict[str, int] = {}


def reset_sequences():
    """Reset all sequences. Call between tests for predictable values."""
    global _sequences
    _sequences = {}


def _next(name: str) -> int:
    """Get next sequence number for a given entity type."""
    _sequences[name] = _sequences.get(name, 0) + 1
    return _sequences[name]


# =============================================================================
# CANONICAL SIDE
# =============================================================================

def create_test_user(
    db: Session,
    email: Optional[str] = None,
    role: str = "MEMBER",
    **overrides
) -> "User":
    """
    Create a test user (MEMBER unless role says otherwise).

    Args:
        db: Database session
        email: User email (auto-generated if not provided)
        role: 'MEMBER' or 'ADMIN'
        **overrides: Additional field overrides

    Returns:
        Created User instance
    """
    from app.models.user import User

    seq = _next("user")
    user = User(
        email=email if email is not None else f"member{seq}@example.com",
        name=overrides.pop("name", f"Member {seq}"),
        password_hash=overrides.pop("password_hash", "not-a-real-hash"),
        role=role,
        **overrides
    )
    db.add(user)
    db.flush()
    return user


def create_test_plan(
    db: Session,
    name: Optional[str] = None,
    price: Decimal = Decimal("6000.00"),
    **overrides
) -> "Plan":
    from app.models.membership import Plan

    seq = _next("plan")
    plan = Plan(
        name=name or f"Plan {seq}",
        price=price,
        duration_days=overrides.pop("duration_days", 90),
        **overrides
    )
    db.add(plan)
    db.flush()
    return plan


def create_test_membership(
    db: Session,
    user: "User",
    plan: "Plan",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: str = "ACTIVE",
) -> "Membership":
    from app.models.membership import Membership

    start_date = start_date or date.today()
    membership = Membership(
        user_id=user.id,
        plan_id=plan.id,
        start_date=start_date,
        end_date=end_date or start_date + timedelta(days=plan.duration_days),
        status=status,
    )
    db.add(membership)
    db.flush()
    return membership


def create_test_payment(
    db: Session,
    user: "User",
    amount: Decimal,
    paid_at: Optional[datetime] = None,
    payment_mode: str = "CASH",
    **overrides
) -> "Payment":
    from app.models.payment import Payment

    payment = Payment(
        user_id=user.id,
        amount=amount,
        payment_mode=payment_mode,
        paid_at=paid_at or datetime(2026, 1, 1, 10, 0, 0),
        **overrides
    )
    db.add(payment)
    db.flush()
    return payment


# =============================================================================
# LEDGER SIDE
# =============================================================================

def make_installment(installment_id: int, amount: str, **overrides) -> Dict[str, Any]:
    installment = {
        "id": installment_id,
        "amount": amount,
        "payment_mode": "CASH",
        "notes": "",
        "paid_at": "2026-01-01T10:00:00",
    }
    installment.update(overrides)
    return installment


def create_test_member_record(
    db: Session,
    name: Optional[str] = None,
    installments: Optional[List[Dict[str, Any]]] = None,
    **overrides
) -> "MemberRecord":
    """
    Create a ledger row directly (bypassing the service layer).

    paid_amount defaults to the sum of ``installments``.
    """
    from app.models.member_record import MemberRecord

    seq = _next("record")
    installments = installments or []
    paid = sum((Decimal(i["amount"]) for i in installments), Decimal("0"))
    record = MemberRecord(
        name=name or f"Walk-in {seq}",
        payment_installments=installments,
        paid_amount=overrides.pop("paid_amount", paid),
        plan_total_amount=overrides.pop("plan_total_amount", Decimal("0")),
        **overrides
    )
    db.add(record)
    db.flush()
    return record
