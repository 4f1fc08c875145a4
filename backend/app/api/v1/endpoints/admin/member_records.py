"""
Member Records Endpoints (Admin Only)

The member ledger: walk-in members entered by hand plus signed-up members
mirrored from app accounts. Listing triggers a throttled reconciliation
pass; bulk resets and payment corrections need super-admin capabilities.
"""
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.api.v1.deps import get_current_admin_user, get_sync_scheduler, require_capability
from app.core.capabilities import BULK_DESTRUCTIVE_ACTIONS, LEDGER_CORRECTIONS
from app.core.config import settings
from app.core.limiter import limiter
from app.db.session import get_db
from app.exceptions import ValidationError
from app.logging_config import get_logger
from app.models.member_record import MemberRecord
from app.models.user import User
from app.schemas.member_record import (
    BulkActionResponse,
    InstallmentCreate,
    MemberRecordCreate,
    MemberRecordListResponse,
    MemberRecordResponse,
    MemberRecordStats,
    MemberRecordUpdate,
    MessageResponse,
    PaymentDeletedResponse,
    PaymentHistoryResponse,
    PaymentRecordedResponse,
    SyncReportResponse,
)
from app.services import member_record_service
from app.services.installment_ledger import InstallmentLedger
from app.services.member_record_query import (
    MemberRecordFilter,
    get_member_record_stats,
    list_member_records,
)
from app.services.member_sync_service import MemberSyncService
from app.services.sync_scheduler import SyncScheduler

router = APIRouter(prefix="/member-records", tags=["Admin - Member Records"])

logger = get_logger(__name__)


class BulkAction(str, Enum):
    CLEAR_PAYMENTS = "clear-payments"
    CLEAR_ALL = "clear-all"
    RESET_SYNC = "reset-sync"


def _record_payload(record: MemberRecord, **extra: Any) -> Dict[str, Any]:
    """Serialize a ledger row with its linked app account details."""
    user = record.linked_user
    payload = {
        "id": record.id,
        "user_id": record.user_id,
        "name": record.name,
        "email": record.email,
        "phone": record.phone,
        "plan_name": record.plan_name,
        "plan_total_amount": record.plan_total_amount or 0,
        "paid_amount": record.paid_amount or 0,
        "remaining_amount": record.remaining_amount,
        "payment_installments": record.installments,
        "membership_start_date": record.membership_start_date,
        "membership_end_date": record.membership_end_date,
        "notes": record.notes,
        "is_signed_up": record.is_signed_up,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "user_name": user.name if user else None,
        "user_email": user.email if user else None,
        "user_phone": user.phone if user else None,
        "user_avatar": user.avatar_url if user else None,
    }
    payload.update(extra)
    return payload


def _run_sync(db: Session, scheduler: SyncScheduler, force: bool) -> Optional[int]:
    """Throttled reconciliation for list views. Failures never block the listing."""
    try:
        return scheduler.run_if_due(lambda: MemberSyncService(db).reconcile().synced, force=force)
    except Exception:
        db.rollback()
        logger.error("Member ledger sync failed during listing", exc_info=True)
        return None


# ============================================================================
# LIST, STATS & SYNC
# ============================================================================

@router.get("", response_model=MemberRecordListResponse)
async def list_records(
    search: Optional[str] = None,
    record_filter: MemberRecordFilter = Query(MemberRecordFilter.ALL, alias="filter"),
    sync: bool = Query(False, description="Force a reconciliation pass"),
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    scheduler: SyncScheduler = Depends(get_sync_scheduler),
):
    """
    List member records, most urgent subscriptions first.

    Runs a reconciliation pass first when the last one is older than
    MEMBER_SYNC_INTERVAL_SECONDS, or when ``sync=true``.
    Stats always cover the whole ledger.
    """
    synced = _run_sync(db, scheduler, force=sync)

    views = list_member_records(db, search=search, record_filter=record_filter)
    return {
        "records": [
            _record_payload(
                view.record,
                sr_no=view.sr_no,
                subscription_status=view.subscription_status.value,
            )
            for view in views
        ],
        "stats": get_member_record_stats(db),
        "synced": synced,
    }


@router.get("/stats", response_model=MemberRecordStats)
async def record_stats(
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """Ledger-wide counts and revenue totals."""
    return get_member_record_stats(db)


@router.post("/sync", response_model=SyncReportResponse)
@limiter.limit(settings.BULK_ACTION_RATE_LIMIT)
async def sync_records(
    request: Request,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
    scheduler: SyncScheduler = Depends(get_sync_scheduler),
):
    """Force a reconciliation pass and return a detailed report."""
    report = scheduler.run_if_due(lambda: MemberSyncService(db).reconcile(), force=True)
    logger.info(
        f"Manual member sync by {current_admin.email}",
        extra={"user_id": current_admin.id, "synced": report.synced},
    )
    return report.as_dict()


@router.delete("", response_model=BulkActionResponse)
@limiter.limit(settings.BULK_ACTION_RATE_LIMIT)
async def bulk_action(
    request: Request,
    action: BulkAction = Query(...),
    current_admin: User = Depends(require_capability(BULK_DESTRUCTIVE_ACTIONS)),
    db: Session = Depends(get_db),
    scheduler: SyncScheduler = Depends(get_sync_scheduler),
):
    """
    Super-admin bulk corrections.

    - clear-payments: zero every balance and delete canonical payments
    - clear-all: delete every ledger row
    - reset-sync: delete every ledger row, then rebuild it from app accounts
    """
    logger.warning(
        f"Bulk member record action '{action.value}' by {current_admin.email}",
        extra={"user_id": current_admin.id, "action": action.value},
    )

    if action == BulkAction.CLEAR_PAYMENTS:
        affected = member_record_service.clear_all_payments(db)
        db.commit()
        return {
            "action": action.value,
            "message": f"Cleared payment data from {affected} records",
            "affected": affected,
        }

    affected = member_record_service.clear_all_records(db)
    db.commit()

    if action == BulkAction.CLEAR_ALL:
        return {
            "action": action.value,
            "message": f"Deleted all {affected} records",
            "affected": affected,
        }

    report = scheduler.run_if_due(lambda: MemberSyncService(db).reconcile(), force=True)
    return {
        "action": action.value,
        "message": f"Reset complete. Deleted {affected} records and synced {report.synced} users",
        "affected": affected,
        "sync": report.as_dict(),
    }


# ============================================================================
# CREATE
# ============================================================================

@router.post("", response_model=MemberRecordResponse, status_code=201)
async def create_record(
    data: MemberRecordCreate,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """
    Enter a member by hand.

    Duplicate email/phone is rejected. Links to an app account when one
    matches the email or phone.
    """
    record = member_record_service.create_member_record(db, data, recorded_by=current_admin.id)
    db.commit()
    db.refresh(record)
    return _record_payload(record)


# ============================================================================
# SINGLE RECORD
# ============================================================================

@router.get("/{record_id}", response_model=MemberRecordResponse)
async def get_record(
    record_id: int,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    return _record_payload(member_record_service.get_member_record(db, record_id))


@router.put("/{record_id}", response_model=MemberRecordResponse)
async def update_record(
    record_id: int,
    data: MemberRecordUpdate,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """Edit identity, plan, dates or notes. Payments go through /payment."""
    record = member_record_service.update_member_record(db, record_id, data)
    db.commit()
    db.refresh(record)
    return _record_payload(record)


@router.delete("/{record_id}", response_model=MessageResponse)
async def delete_record(
    record_id: int,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """Delete a walk-in record. Signed-up members are removed via their account."""
    record = member_record_service.delete_member_record(db, record_id)
    db.commit()
    return {"message": f"Member record for {record.name} deleted"}


# ============================================================================
# PAYMENTS
# ============================================================================

@router.get("/{record_id}/payment", response_model=PaymentHistoryResponse)
async def payment_history(
    record_id: int,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    record = member_record_service.get_member_record(db, record_id)
    return {
        "record_id": record.id,
        "name": record.name,
        "plan_total_amount": record.plan_total_amount or 0,
        "paid_amount": record.paid_amount or 0,
        "remaining_amount": record.remaining_amount,
        "payments": record.installments,
    }


@router.post("/{record_id}/payment", response_model=PaymentRecordedResponse, status_code=201)
async def add_payment(
    record_id: int,
    data: InstallmentCreate,
    current_admin: User = Depends(get_current_admin_user),
    db: Session = Depends(get_db),
):
    """Record a payment installment against a member."""
    record, installment = InstallmentLedger(db).add_installment(
        record_id,
        data.amount,
        payment_mode=data.payment_mode,
        notes=data.notes,
        paid_at=data.paid_at,
        recorded_by=current_admin.id,
    )
    db.commit()
    db.refresh(record)
    return {"record": _record_payload(record), "payment": installment}


@router.delete("/{record_id}/payment", response_model=PaymentDeletedResponse)
async def delete_payment(
    record_id: int,
    payment_id: Optional[str] = Query(None),
    current_admin: User = Depends(require_capability(LEDGER_CORRECTIONS)),
    db: Session = Depends(get_db),
):
    """Remove one installment and recompute the balance."""
    if not payment_id:
        raise ValidationError("Payment ID is required", field="payment_id")

    record, removed = InstallmentLedger(db).delete_installment(record_id, payment_id)
    db.commit()
    db.refresh(record)
    return {"record": _record_payload(record), "deleted_payment": removed}


@router.post("/{record_id}/payment/clear", response_model=MemberRecordResponse)
async def clear_payments(
    record_id: int,
    current_admin: User = Depends(require_capability(LEDGER_CORRECTIONS)),
    db: Session = Depends(get_db),
):
    """Drop a record's whole installment log."""
    record = InstallmentLedger(db).clear_installments(record_id)
    db.commit()
    db.refresh(record)
    return _record_payload(record)
