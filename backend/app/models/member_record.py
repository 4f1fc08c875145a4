"""
Member Record Model

The member ledger: one row per human, whether or not they have signed
up in the app. Walk-in members are entered by admins (user_id NULL);
signed-up members are mirrored from the canonical tables by the
reconciliation service.

payment_installments is an ordered, append-only list of payment events:
    {"id": int, "amount": "1500.00", "payment_mode": "CASH",
     "notes": "", "paid_at": "2026-01-05T10:00:00", "recorded_by": "<user id>"}
Amounts are stored as decimal strings. The installment "id" is only
unique within its record.
"""
from decimal import Decimal

from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import relationship

from app.db.base import Base, utcnow


class MemberRecord(Base):
    """
    Ledger row for a gym member.

    remaining_amount is derived (plan_total_amount - paid_amount) and is
    allowed to go negative when a member has overpaid.
    """
    __tablename__ = "member_records"

    id = Column(Integer, primary_key=True)

    # Link to the canonical account; survives user deletion as NULL until cleanup
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    # Identity (email and phone are unique independently; NULLs allowed)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True, index=True)
    phone = Column(String(20), unique=True, nullable=True, index=True)

    # Plan snapshot (free text, not a reference to plans)
    plan_name = Column(String(255), nullable=True)
    plan_total_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    paid_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0"))
    payment_installments = Column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )

    membership_start_date = Column(Date, nullable=True)
    membership_end_date = Column(Date, nullable=True)

    notes = Column(Text, nullable=True)
    is_signed_up = Column(Boolean, nullable=False, default=False, index=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    linked_user = relationship("User", foreign_keys=[user_id], lazy="joined")

    def __repr__(self):
        return f"<MemberRecord(id={self.id}, name='{self.name}', signed_up={self.is_signed_up})>"

    @hybrid_property
    def remaining_amount(self) -> Decimal:
        return Decimal(self.plan_total_amount or 0) - Decimal(self.paid_amount or 0)

    @remaining_amount.inplace.expression
    @classmethod
    def _remaining_amount_expression(cls):
        return cls.plan_total_amount - cls.paid_amount

    @property
    def installments(self) -> list:
        return list(self.payment_installments or [])
