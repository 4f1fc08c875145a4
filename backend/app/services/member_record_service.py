"""
Member Record Service - manual ledger entry, edits and bulk corrections

IMPORTANT: This service does NOT commit. Caller is responsible for commit.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.db.base import utcnow
from app.exceptions import DuplicateError, NotFoundError, SignedUpMemberDeletionError, ValidationError
from app.logging_config import get_logger
from app.models.member_record import MemberRecord
from app.models.payment import Payment
from app.schemas.member_record import MemberRecordCreate, MemberRecordUpdate
from app.services.identity_resolver import (
    find_record_by_email,
    find_record_by_phone,
    find_signed_up_user,
)
from app.services.installment_ledger import (
    build_installment,
    installment_token,
    next_installment_id,
    sum_installments,
)

logger = get_logger(__name__)

OPENING_BALANCE_NOTE = "Opening balance"


def get_member_record(db: Session, record_id: int) -> MemberRecord:
    record = db.get(MemberRecord, record_id)
    if record is None:
        raise NotFoundError("Member record", record_id)
    return record


def _check_unique(db: Session, email: Optional[str], phone: Optional[str], exclude_id: Optional[int] = None) -> None:
    if email and find_record_by_email(db, email, exclude_id=exclude_id):
        raise DuplicateError("Member record", field="email", value=email)
    if phone and find_record_by_phone(db, phone, exclude_id=exclude_id):
        raise DuplicateError("Member record", field="phone", value=phone)


def _opening_installments(data: MemberRecordCreate, recorded_by: Optional[str]) -> List[Dict[str, Any]]:
    """Installment log for a manual entry (explicit list, or the opening balance)."""
    installments: List[Dict[str, Any]] = []

    if data.payment_installments:
        for item in data.payment_installments:
            if item.amount <= 0:
                raise ValidationError("Valid payment amount is required", field="amount", value=item.amount)
            installments.append(
                build_installment(
                    next_installment_id(installments, installment_token()),
                    item.amount,
                    payment_mode=item.payment_mode,
                    notes=item.notes,
                    paid_at=item.paid_at,
                    recorded_by=recorded_by,
                )
            )
    elif data.paid_amount and data.paid_amount > 0:
        installments.append(
            build_installment(
                installment_token(),
                data.paid_amount,
                notes=OPENING_BALANCE_NOTE,
                recorded_by=recorded_by,
            )
        )
    return installments


def create_member_record(
    db: Session,
    data: MemberRecordCreate,
    recorded_by: Optional[str] = None,
) -> MemberRecord:
    """
    Create a manual ledger row.

    Links the row to an existing MEMBER account when one matches the given
    email or phone.

    Raises:
        DuplicateError: email or phone already held by another record
        ValidationError: non-positive installment amount
    """
    email = str(data.email) if data.email else None
    _check_unique(db, email, data.phone)

    installments = _opening_installments(data, recorded_by)
    linked_user = find_signed_up_user(db, email=email, phone=data.phone)

    now = utcnow()
    record = MemberRecord(
        user_id=linked_user.id if linked_user else None,
        name=data.name,
        email=email,
        phone=data.phone,
        plan_name=data.plan_name,
        plan_total_amount=data.plan_total_amount,
        paid_amount=sum_installments(installments),
        payment_installments=installments,
        membership_start_date=data.membership_start_date,
        membership_end_date=data.membership_end_date,
        notes=data.notes,
        is_signed_up=linked_user is not None,
        created_at=now,
        updated_at=now,
    )
    db.add(record)
    db.flush()

    logger.info(
        f"Created member record {record.id} ({record.name})",
        extra={"member_record_id": record.id, "linked_user_id": record.user_id},
    )
    return record


def update_member_record(db: Session, record_id: int, data: MemberRecordUpdate) -> MemberRecord:
    """
    Apply an admin edit. Only fields present in the request change.

    Raises:
        NotFoundError: record does not exist
        DuplicateError: new email or phone held by another record
        ValidationError: end date before start date
    """
    record = get_member_record(db, record_id)
    changes = data.model_dump(exclude_unset=True)
    if "email" in changes and changes["email"] is not None:
        changes["email"] = str(changes["email"])
    if "name" in changes and changes["name"] is None:
        changes.pop("name")
    if "plan_total_amount" in changes and changes["plan_total_amount"] is None:
        changes["plan_total_amount"] = Decimal("0")

    _check_unique(db, changes.get("email"), changes.get("phone"), exclude_id=record.id)

    start = changes.get("membership_start_date", record.membership_start_date)
    end = changes.get("membership_end_date", record.membership_end_date)
    if start and end and end < start:
        raise ValidationError(
            "membership_end_date cannot be before membership_start_date",
            field="membership_end_date",
            value=end,
        )

    for field_name, value in changes.items():
        setattr(record, field_name, value)

    # Re-detect the app account when identity fields change
    if "email" in changes or "phone" in changes:
        linked_user = find_signed_up_user(db, email=record.email, phone=record.phone)
        if linked_user is not None:
            record.user_id = linked_user.id
            record.is_signed_up = True

    record.updated_at = utcnow()
    db.flush()

    logger.info(
        f"Updated member record {record.id}",
        extra={"member_record_id": record.id, "fields": sorted(changes)},
    )
    return record


def delete_member_record(db: Session, record_id: int) -> MemberRecord:
    """
    Delete a manual (walk-in) record.

    Raises:
        NotFoundError: record does not exist
        SignedUpMemberDeletionError: record mirrors an app account
    """
    record = get_member_record(db, record_id)
    if record.is_signed_up or record.user_id:
        raise SignedUpMemberDeletionError(record.name, record_id=record.id)

    db.delete(record)
    db.flush()
    logger.info(f"Deleted member record {record_id} ({record.name})")
    return record


# ============================================================================
# BULK CORRECTIONS (super admin)
# ============================================================================

def clear_all_payments(db: Session) -> int:
    """
    Zero every ledger balance and delete canonical payment rows.

    Returns:
        Number of ledger rows touched
    """
    touched = db.query(MemberRecord).update(
        {
            MemberRecord.paid_amount: Decimal("0"),
            MemberRecord.payment_installments: [],
            MemberRecord.updated_at: utcnow(),
        },
        synchronize_session=False,
    )
    removed_payments = db.execute(delete(Payment)).rowcount
    db.expire_all()

    logger.warning(
        f"Cleared payments on {touched} member records and {removed_payments} canonical payments",
        extra={"member_records": touched, "payments": removed_payments},
    )
    return touched


def clear_all_records(db: Session) -> int:
    """Delete every ledger row. Returns the number deleted."""
    removed = db.execute(delete(MemberRecord)).rowcount
    db.expire_all()
    logger.warning(f"Deleted all {removed} member records", extra={"member_records": removed})
    return removed
