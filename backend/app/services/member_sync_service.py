"""
Member Sync Service - mirror canonical members into the member ledger

One pass:
1. Load every MEMBER user with their ACTIVE membership, its plan and
   their lifetime payment total.
2. For each user (skipping those without email), resolve the ledger row
   and UPDATE it in place or INSERT a fresh one. Each user is its own
   transaction: a failure rolls back that user only and the pass goes on.
3. Delete signed-up ledger rows whose email no longer belongs to a MEMBER.

Merge policy on existing rows: identity fields (user_id, name, email,
phone) are overwritten; plan name, plan total, paid amount and dates are
only overwritten by non-empty / positive canonical values. The
installment log of an existing row is never touched.

Passes are expensive (a few queries per member). Callers throttle them
through SyncScheduler.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import utcnow
from app.logging_config import get_logger
from app.models.member_record import MemberRecord
from app.models.membership import Membership, Plan, MEMBERSHIP_ACTIVE
from app.models.payment import Payment
from app.models.user import User, ROLE_MEMBER
from app.services.identity_resolver import find_ledger_record, release_phone
from app.services.installment_ledger import (
    build_installment,
    installment_token,
    parse_amount,
    sum_installments,
)

logger = get_logger(__name__)


@dataclass
class CanonicalMember:
    """Snapshot of one MEMBER user as the canonical tables describe them"""
    user_id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    created_at: Optional[datetime] = None
    plan_name: Optional[str] = None
    plan_price: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class MemberSyncOutcome(NamedTuple):
    action: str  # "created" or "updated"
    record_id: Optional[int]
    phone_taken_from: Optional[str] = None


@dataclass
class SyncReport:
    total_users: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    orphans_removed: int = 0
    details: List[str] = field(default_factory=list)
    detail_limit: int = 20

    @property
    def synced(self) -> int:
        return self.created + self.updated

    def add_detail(self, line: str) -> None:
        if len(self.details) < self.detail_limit:
            self.details.append(line)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "total_users": self.total_users,
            "created": self.created,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
            "orphans_removed": self.orphans_removed,
            "synced": self.synced,
            "details": list(self.details),
        }


class MemberSyncService:
    """
    Reconciliation of users/memberships/payments into member_records.

    Unlike the ledger and record services, this one commits: each member
    is committed (or rolled back) on its own.
    """

    def __init__(self, db: Session, detail_limit: Optional[int] = None):
        self.db = db
        self.detail_limit = settings.SYNC_REPORT_DETAIL_LIMIT if detail_limit is None else detail_limit

    # === CANONICAL SIDE ===

    def load_canonical_members(self) -> List[CanonicalMember]:
        """MEMBER users with their current ACTIVE membership (latest end date wins)."""
        total_paid = (
            select(func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.user_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )

        rows = (
            self.db.query(
                User.id,
                User.name,
                User.email,
                User.phone,
                User.created_at,
                Membership.start_date,
                Membership.end_date,
                Plan.name.label("plan_name"),
                Plan.price.label("plan_price"),
                total_paid.label("total_paid"),
            )
            .outerjoin(
                Membership,
                and_(Membership.user_id == User.id, Membership.status == MEMBERSHIP_ACTIVE),
            )
            .outerjoin(Plan, Membership.plan_id == Plan.id)
            .filter(User.role == ROLE_MEMBER)
            .order_by(User.created_at, User.id, Membership.end_date.desc().nulls_last())
            .all()
        )

        members: Dict[str, CanonicalMember] = {}
        for row in rows:
            if row.id in members:
                continue
            members[row.id] = CanonicalMember(
                user_id=row.id,
                name=row.name,
                email=row.email or None,
                phone=row.phone or None,
                created_at=row.created_at,
                plan_name=row.plan_name or None,
                plan_price=parse_amount(row.plan_price),
                total_paid=parse_amount(row.total_paid),
                start_date=row.start_date,
                end_date=row.end_date,
            )
        return list(members.values())

    def materialize_installments(self, user_id: str) -> List[Dict[str, Any]]:
        """Replay a user's canonical payments, oldest first, as an installment log."""
        payments = (
            self.db.query(Payment)
            .filter(Payment.user_id == user_id)
            .order_by(Payment.paid_at, Payment.id)
            .all()
        )
        base = installment_token()
        return [
            build_installment(
                base + idx,
                payment.amount,
                payment_mode=payment.payment_mode,
                notes=payment.notes,
                paid_at=payment.paid_at,
            )
            for idx, payment in enumerate(payments)
        ]

    # === LEDGER SIDE ===

    def reconcile_one_member(self, member: CanonicalMember) -> MemberSyncOutcome:
        """
        Upsert the ledger row for one canonical member (no commit).

        Phone conflicts are cleared before the owning write.
        """
        record = find_ledger_record(self.db, email=member.email, user_id=member.user_id)
        if record is not None:
            return self._update_existing(record, member)
        return self._insert_new(member)

    def _update_existing(self, record: MemberRecord, member: CanonicalMember) -> MemberSyncOutcome:
        loser = release_phone(self.db, member.phone, keep_record_id=record.id)

        record.user_id = member.user_id
        record.name = member.name
        record.email = member.email
        record.phone = member.phone

        if member.plan_name:
            record.plan_name = member.plan_name
        if member.plan_price > 0:
            record.plan_total_amount = member.plan_price
        if member.total_paid > 0:
            record.paid_amount = member.total_paid
        if member.start_date:
            record.membership_start_date = member.start_date
        if member.end_date:
            record.membership_end_date = member.end_date

        record.is_signed_up = True
        record.updated_at = utcnow()
        self.db.flush()

        return MemberSyncOutcome("updated", record.id, loser.name if loser else None)

    def _insert_new(self, member: CanonicalMember) -> MemberSyncOutcome:
        loser = release_phone(self.db, member.phone)

        installments = self.materialize_installments(member.user_id)
        now = utcnow()
        values = {
            "user_id": member.user_id,
            "name": member.name,
            "email": member.email,
            "phone": member.phone,
            "plan_name": member.plan_name,
            "plan_total_amount": member.plan_price,
            "paid_amount": sum_installments(installments),
            "payment_installments": installments,
            "membership_start_date": member.start_date,
            "membership_end_date": member.end_date,
            "is_signed_up": True,
            "created_at": member.created_at or now,
            "updated_at": now,
        }

        stmt = self._upsert_statement(values)
        if stmt is None:
            record = MemberRecord(**values)
            self.db.add(record)
            self.db.flush()
        else:
            self.db.execute(stmt)
            self.db.flush()
            record = find_ledger_record(self.db, email=member.email, user_id=member.user_id)

        return MemberSyncOutcome("created", record.id if record else None, loser.name if loser else None)

    def _upsert_statement(self, values: Dict[str, Any]):
        """
        INSERT ... ON CONFLICT (email) DO UPDATE with the non-destructive merge.

        Covers the window between the identity lookup and the insert
        (another pass or a manual entry landing the same email).
        Returns None on dialects without ON CONFLICT support.
        """
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            insert_fn = pg_insert
        elif dialect == "sqlite":
            insert_fn = sqlite_insert
        else:
            return None

        table = MemberRecord.__table__
        stmt = insert_fn(table).values(**values)
        incoming = stmt.excluded
        return stmt.on_conflict_do_update(
            index_elements=[table.c.email],
            set_={
                "user_id": incoming.user_id,
                "name": incoming.name,
                "phone": func.coalesce(incoming.phone, table.c.phone),
                "plan_name": func.coalesce(incoming.plan_name, table.c.plan_name),
                "plan_total_amount": case(
                    (incoming.plan_total_amount > 0, incoming.plan_total_amount),
                    else_=table.c.plan_total_amount,
                ),
                "paid_amount": case(
                    (incoming.paid_amount > 0, incoming.paid_amount),
                    else_=table.c.paid_amount,
                ),
                "membership_start_date": func.coalesce(
                    incoming.membership_start_date, table.c.membership_start_date
                ),
                "membership_end_date": func.coalesce(
                    incoming.membership_end_date, table.c.membership_end_date
                ),
                "is_signed_up": True,
                "updated_at": values["updated_at"],
            },
        )

    # === CLEANUP ===

    def remove_orphans(self) -> int:
        """
        Delete signed-up ledger rows whose email is not a current MEMBER's.

        Signed-up rows without an email are orphans too. With no MEMBER
        users at all, every signed-up row goes.
        """
        member_emails = sorted({
            email.lower()
            for (email,) in self.db.query(User.email).filter(User.role == ROLE_MEMBER)
            if email
        })

        query = self.db.query(MemberRecord.id).filter(MemberRecord.is_signed_up.is_(True))
        if member_emails:
            query = query.filter(
                or_(
                    MemberRecord.email.is_(None),
                    func.lower(MemberRecord.email).notin_(member_emails),
                )
            )
        orphan_ids = [record_id for (record_id,) in query]

        if orphan_ids:
            self.db.execute(
                delete(MemberRecord)
                .where(MemberRecord.id.in_(orphan_ids))
                .execution_options(synchronize_session="fetch")
            )
        self.db.commit()
        return len(orphan_ids)

    # === PASS ===

    def reconcile(self) -> SyncReport:
        """
        Run one full reconciliation pass.

        Returns:
            SyncReport with per-outcome counts; report.synced is the number
            of ledger rows created or updated
        """
        report = SyncReport(detail_limit=self.detail_limit)
        members = self.load_canonical_members()
        report.total_users = len(members)

        for member in members:
            if not member.email:
                report.skipped += 1
                report.add_detail(f"Skipped {member.name}: no email")
                continue

            try:
                outcome = self.reconcile_one_member(member)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                report.failed += 1
                report.add_detail(f"Failed: {member.name} - {e}")
                logger.warning(
                    f"Member sync failed for {member.email}",
                    exc_info=True,
                    extra={"user_id": member.user_id},
                )
                continue

            if outcome.action == "created":
                report.created += 1
                report.add_detail(f"Created: {member.name} ({member.email})")
            else:
                report.updated += 1
                report.add_detail(f"Updated: {member.name} ({member.email})")
            if outcome.phone_taken_from:
                report.add_detail(
                    f"Cleared phone {member.phone} from {outcome.phone_taken_from} "
                    f"(now belongs to {member.name})"
                )

        try:
            report.orphans_removed = self.remove_orphans()
            if report.orphans_removed:
                report.add_detail(f"Removed {report.orphans_removed} orphaned records (users deleted)")
        except Exception:
            self.db.rollback()
            logger.error("Member ledger cleanup failed", exc_info=True)

        logger.info(
            f"Member ledger sync: {report.created} created, {report.updated} updated, "
            f"{report.failed} failed, {report.orphans_removed} orphans removed",
            extra={
                "total_users": report.total_users,
                "created_count": report.created,
                "updated_count": report.updated,
                "skipped_count": report.skipped,
                "failed_count": report.failed,
                "orphans_removed": report.orphans_removed,
            },
        )
        return report
