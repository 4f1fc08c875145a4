"""
Database models

Importing this package registers every table on Base.metadata.
"""
from app.models.user import User, ROLE_ADMIN, ROLE_MEMBER
from app.models.membership import (
    Plan,
    Membership,
    MEMBERSHIP_ACTIVE,
    MEMBERSHIP_EXPIRED,
    MEMBERSHIP_BLOCKED,
)
from app.models.payment import Payment
from app.models.member_record import MemberRecord

__all__ = [
    "User",
    "ROLE_ADMIN",
    "ROLE_MEMBER",
    "Plan",
    "Membership",
    "MEMBERSHIP_ACTIVE",
    "MEMBERSHIP_EXPIRED",
    "MEMBERSHIP_BLOCKED",
    "Payment",
    "MemberRecord",
]
