"""
User model - canonical app accounts (admins and signed-up members)
"""
import uuid

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship

from app.db.base import Base, utcnow

ROLE_ADMIN = "ADMIN"
ROLE_MEMBER = "MEMBER"


class User(Base):
    """
    Canonical user account.

    Members who sign up in the app land here; the member ledger
    (member_records) mirrors them during reconciliation.
    """
    __tablename__ = "users"

    # Primary Key (uuid string, issued by the app on signup)
    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Identity
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    avatar_url = Column(String(500), nullable=True)

    # Access
    role = Column(String(20), default=ROLE_MEMBER, nullable=False, index=True)  # ADMIN, MEMBER
    is_blocked = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    memberships = relationship("Membership", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def is_active(self) -> bool:
        return not self.is_blocked

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_member(self) -> bool:
        return self.role == ROLE_MEMBER
