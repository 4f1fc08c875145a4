"""
Plan and Membership models

A membership ties a user to a plan for a date range. Only ACTIVE
memberships feed the member ledger during reconciliation.
"""
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.db.base import Base, utcnow

MEMBERSHIP_ACTIVE = "ACTIVE"
MEMBERSHIP_EXPIRED = "EXPIRED"
MEMBERSHIP_BLOCKED = "BLOCKED"


class Plan(Base):
    """Subscription plan offered by the gym"""
    __tablename__ = "plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    duration_days = Column(Integer, nullable=False, default=30)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    memberships = relationship("Membership", back_populates="plan")

    def __repr__(self):
        return f"<Plan(id={self.id}, name='{self.name}', price={self.price})>"


class Membership(Base):
    """
    A user's subscription to a plan.

    status values:
        - ACTIVE: current subscription
        - EXPIRED: past end date (set by the expiry job)
        - BLOCKED: suspended by an admin
    """
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id", ondelete="RESTRICT"), nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), default=MEMBERSHIP_ACTIVE, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="memberships")
    plan = relationship("Plan", back_populates="memberships")

    def __repr__(self):
        return f"<Membership(id={self.id}, user_id={self.user_id}, status='{self.status}')>"
