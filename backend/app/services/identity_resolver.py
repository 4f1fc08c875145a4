"""
Identity Resolver - which member record represents a given person

Email and phone are unique independently on member_records, so one
person can match a record by email while their phone sits on another
(stale, manually entered) record. The canonical account owns the phone:
the other record loses it.
"""
from typing import Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models.member_record import MemberRecord
from app.models.user import User, ROLE_MEMBER

logger = get_logger(__name__)


def find_ledger_record(db: Session, *, email: Optional[str], user_id: Optional[str]) -> Optional[MemberRecord]:
    """
    Find the record mirroring a canonical user, by email OR user id.

    Emails match case-insensitively. When the two keys hit different
    rows, the email match wins.
    """
    email_match = func.lower(MemberRecord.email) == email.lower() if email else None

    conditions = []
    if email_match is not None:
        conditions.append(email_match)
    if user_id:
        conditions.append(MemberRecord.user_id == user_id)
    if not conditions:
        return None

    query = db.query(MemberRecord).filter(or_(*conditions))
    if email_match is not None:
        query = query.order_by(case((email_match, 0), else_=1), MemberRecord.id)
    return query.first()


def find_record_by_phone(db: Session, phone: str, exclude_id: Optional[int] = None) -> Optional[MemberRecord]:
    query = db.query(MemberRecord).filter(MemberRecord.phone == phone)
    if exclude_id is not None:
        query = query.filter(MemberRecord.id != exclude_id)
    return query.first()


def find_record_by_email(db: Session, email: str, exclude_id: Optional[int] = None) -> Optional[MemberRecord]:
    """Case-insensitive email lookup used for duplicate checks on manual entry"""
    query = db.query(MemberRecord).filter(func.lower(MemberRecord.email) == email.lower())
    if exclude_id is not None:
        query = query.filter(MemberRecord.id != exclude_id)
    return query.first()


def release_phone(db: Session, phone: Optional[str], keep_record_id: Optional[int] = None) -> Optional[MemberRecord]:
    """
    Clear ``phone`` from whichever other record holds it.

    Flushes immediately so the clearing UPDATE reaches the database before
    the owning record writes the same phone.

    Args:
        phone: Phone number being claimed
        keep_record_id: The claiming record (never cleared)

    Returns:
        The record that lost the phone, or None if there was no conflict
    """
    if not phone:
        return None

    holder = find_record_by_phone(db, phone, exclude_id=keep_record_id)
    if holder is None:
        return None

    logger.info(
        f"Clearing phone {phone} from member record {holder.id} ({holder.name})",
        extra={"member_record_id": holder.id, "claimed_by": keep_record_id},
    )
    holder.phone = None
    db.flush()
    return holder


def find_signed_up_user(db: Session, *, email: Optional[str] = None, phone: Optional[str] = None) -> Optional[User]:
    """
    Canonical MEMBER account matching an email or phone, if any.

    Used when an admin enters a record by hand so it links to an
    existing app account.
    """
    conditions = []
    if email:
        conditions.append(func.lower(User.email) == email.lower())
    if phone:
        conditions.append(User.phone == phone)
    if not conditions:
        return None

    return (
        db.query(User)
        .filter(User.role == ROLE_MEMBER, or_(*conditions))
        .order_by(User.created_at)
        .first()
    )
