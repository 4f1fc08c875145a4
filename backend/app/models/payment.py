"""
Payment Model

Canonical payments recorded against a user (usually for a membership).
Reconciliation replays these, oldest first, as the installment log of a
freshly mirrored member record.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.db.base import Base, utcnow


class Payment(Base):
    """Payment made by a signed-up member"""
    __tablename__ = "payments"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Foreign Keys
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    membership_id = Column(Integer, ForeignKey("memberships.id", ondelete="SET NULL"), nullable=True, index=True)

    amount = Column(Numeric(10, 2), nullable=False)
    payment_mode = Column(String(20), nullable=False, default="CASH")  # CASH, UPI, CARD, BANK_TRANSFER
    notes = Column(Text, nullable=True)

    # Timestamps
    paid_at = Column(DateTime, nullable=False, default=utcnow, index=True)  # When payment was made
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Relationships
    user = relationship("User", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.id} - {self.amount} ({self.payment_mode})>"
