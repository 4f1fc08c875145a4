#!/usr/bin/env python3
"""
FitSense Member Ledger Integrity Checker

Finds member_records rows that drifted from their invariants:
- paid_amount differs from the sum of the installment log
  (expected after a sync UPDATE copied canonical totals)
- signed-up rows whose email no longer belongs to a MEMBER account
- rows linked to a user id that no longer exists

Usage:
  cd backend
  python scripts/ledger_integrity_check.py
  python scripts/ledger_integrity_check.py --repair-orphans

--repair-orphans runs one reconciliation pass, which deletes orphaned
signed-up rows and re-links the rest.
"""
import argparse
import os
import sys

# Add project root to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import func  # noqa: E402

from app.models import MemberRecord, User, ROLE_MEMBER  # noqa: E402
from app.services.installment_ledger import parse_amount, sum_installments  # noqa: E402
from app.services.member_sync_service import MemberSyncService  # noqa: E402


class LedgerIntegrityChecker:
    """Member ledger integrity checks with optional orphan repair"""

    def __init__(self, db):
        self.db = db
        self.issues_found = []
        self.repairs_made = []

    def run_full_check(self, repair_orphans=False):
        print("🔍 FitSense Member Ledger Integrity Check")
        print("=" * 50)

        self.check_installment_totals()
        self.check_orphaned_signed_up_records()
        self.check_dangling_user_links()

        if repair_orphans:
            self.repair_orphans()

        self.print_summary()
        return self.issues_found

    def check_installment_totals(self):
        """paid_amount should equal the installment sum"""
        print("\n💰 Checking paid amounts against installment logs...")

        drifted = []
        for record in self.db.query(MemberRecord).order_by(MemberRecord.id):
            expected = sum_installments(record.installments)
            if parse_amount(record.paid_amount) != expected:
                drifted.append((record, expected))

        if drifted:
            self.issues_found.append({
                'type': 'paid_amount_drift',
                'count': len(drifted),
                'records': [record.id for record, _ in drifted],
            })
            print(f"   ⚠️  {len(drifted)} records where paid_amount differs from installments")
            for record, expected in drifted[:10]:
                print(f"      #{record.id} {record.name}: paid {record.paid_amount}, installments {expected}")
        else:
            print("   ✅ Paid amounts match installment logs")

    def check_orphaned_signed_up_records(self):
        """Signed-up rows whose email is not a current MEMBER's"""
        print("\n👤 Checking signed-up records against member accounts...")

        member_emails = {
            email.lower()
            for (email,) in self.db.query(User.email).filter(User.role == ROLE_MEMBER)
            if email
        }
        orphans = [
            record
            for record in self.db.query(MemberRecord).filter(MemberRecord.is_signed_up.is_(True))
            if not record.email or record.email.lower() not in member_emails
        ]

        if orphans:
            self.issues_found.append({
                'type': 'orphaned_signed_up_records',
                'count': len(orphans),
                'records': [record.id for record in orphans],
            })
            print(f"   ⚠️  {len(orphans)} signed-up records without a member account")
        else:
            print("   ✅ Every signed-up record has a member account")

    def check_dangling_user_links(self):
        """user_id pointing at a deleted user"""
        print("\n🔗 Checking user links...")

        dangling = (
            self.db.query(MemberRecord.id)
            .outerjoin(User, MemberRecord.user_id == User.id)
            .filter(MemberRecord.user_id.isnot(None), User.id.is_(None))
            .all()
        )

        if dangling:
            self.issues_found.append({
                'type': 'dangling_user_links',
                'count': len(dangling),
                'records': [record_id for (record_id,) in dangling],
            })
            print(f"   ⚠️  {len(dangling)} records linked to missing users")
        else:
            print("   ✅ All user links resolve")

    def repair_orphans(self):
        print("\n🔧 Running reconciliation pass...")
        report = MemberSyncService(self.db).reconcile()
        self.repairs_made.append({
            'type': 'reconciliation',
            'synced': report.synced,
            'orphans_removed': report.orphans_removed,
            'failed': report.failed,
        })
        print(f"   ✅ Synced {report.synced} members, removed {report.orphans_removed} orphans")
        if report.failed:
            print(f"   ⚠️  {report.failed} members failed to sync (see logs)")

    def print_summary(self):
        total_records = self.db.query(func.count(MemberRecord.id)).scalar()
        print("\n" + "=" * 50)
        print(f"📋 {total_records:,} member records checked")
        if self.issues_found:
            print(f"⚠️  {len(self.issues_found)} issue types found")
        else:
            print("✅ No issues found")
        if self.repairs_made:
            print(f"🔧 {len(self.repairs_made)} repairs made")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Check member ledger integrity")
    parser.add_argument(
        "--repair-orphans",
        action="store_true",
        help="Run a reconciliation pass to delete orphaned signed-up records",
    )
    args = parser.parse_args(argv)

    from app.db.session import SessionLocal

    db = SessionLocal()
    try:
        issues = LedgerIntegrityChecker(db).run_full_check(repair_orphans=args.repair_orphans)
    finally:
        db.close()
    return 1 if issues and not args.repair_orphans else 0


if __name__ == "__main__":
    sys.exit(main())
