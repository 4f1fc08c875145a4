"""
Installment Ledger - payment events recorded against a member record

paid_amount is always recomputed as the sum of the installment log, and
remaining_amount follows from it (see MemberRecord.remaining_amount).

IMPORTANT: This service does NOT commit. Caller is responsible for commit.

Usage:
    ledger = InstallmentLedger(db)
    record, installment = ledger.add_installment(record_id, Decimal("1500"), "UPI")
    db.commit()
"""
import time
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import utcnow
from app.exceptions import NotFoundError, ValidationError
from app.logging_config import get_logger
from app.models.member_record import MemberRecord

logger = get_logger(__name__)

CENTS = Decimal("0.01")


def parse_amount(value: Any) -> Decimal:
    """Parse a stored or submitted amount. Unparseable values count as zero."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return Decimal("0")


def format_amount(value: Any) -> str:
    return str(parse_amount(value).quantize(CENTS))


def sum_installments(installments: Iterable[Dict[str, Any]]) -> Decimal:
    total = sum((parse_amount(i.get("amount")) for i in installments), Decimal("0"))
    return total.quantize(CENTS)


def installment_token() -> int:
    """Millisecond timestamp used as the base for installment ids"""
    return int(time.time() * 1000)


def next_installment_id(existing: Iterable[Dict[str, Any]], token: Optional[int] = None) -> int:
    """Fresh id that does not collide with any id already in the log."""
    token = installment_token() if token is None else token
    used = []
    for installment in existing:
        try:
            used.append(int(installment.get("id")))
        except (TypeError, ValueError):
            continue
    if used and token <= max(used):
        return max(used) + 1
    return token


def build_installment(
    installment_id: int,
    amount: Any,
    payment_mode: Optional[str] = None,
    notes: Optional[str] = None,
    paid_at: Optional[datetime] = None,
    recorded_by: Optional[str] = None,
) -> Dict[str, Any]:
    installment = {
        "id": installment_id,
        "amount": format_amount(amount),
        "payment_mode": payment_mode or settings.DEFAULT_PAYMENT_MODE,
        "notes": notes or "",
        "paid_at": (paid_at or utcnow()).isoformat(),
    }
    if recorded_by:
        installment["recorded_by"] = str(recorded_by)
    return installment


class InstallmentLedger:
    """
    Append/remove payment installments on member records.

    Every mutation replaces the JSON list (never mutates it in place) so
    SQLAlchemy sees the change, then recomputes paid_amount from it.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.clock = clock

    def get_record(self, record_id: int) -> MemberRecord:
        record = self.db.get(MemberRecord, record_id)
        if record is None:
            raise NotFoundError("Member record", record_id)
        return record

    def _apply(self, record: MemberRecord, installments: List[Dict[str, Any]]) -> None:
        record.payment_installments = installments
        record.paid_amount = sum_installments(installments)
        record.updated_at = self.clock()
        self.db.flush()

    def add_installment(
        self,
        record_id: int,
        amount: Any,
        payment_mode: Optional[str] = None,
        notes: Optional[str] = None,
        paid_at: Optional[datetime] = None,
        recorded_by: Optional[str] = None,
    ) -> Tuple[MemberRecord, Dict[str, Any]]:
        """
        Append a payment to a record's installment log.

        Args:
            record_id: Member record ID
            amount: Positive payment amount
            payment_mode: CASH, UPI, CARD, ... (defaults to DEFAULT_PAYMENT_MODE)
            notes: Free-text note
            paid_at: When the payment was made (defaults to now)
            recorded_by: Acting admin's user id

        Returns:
            (updated record, new installment)

        Raises:
            ValidationError: amount missing, zero or negative
            NotFoundError: record does not exist
        """
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise ValidationError("Valid payment amount is required", field="amount", value=amount)
        if not value.is_finite() or value <= 0:
            raise ValidationError("Valid payment amount is required", field="amount", value=amount)

        record = self.get_record(record_id)
        existing = record.installments
        installment = build_installment(
            next_installment_id(existing),
            value,
            payment_mode=payment_mode,
            notes=notes,
            paid_at=paid_at or self.clock(),
            recorded_by=recorded_by,
        )
        self._apply(record, existing + [installment])

        logger.info(
            f"Recorded payment of {installment['amount']} on member record {record.id}",
            extra={"member_record_id": record.id, "installment_id": installment["id"]},
        )
        return record, installment

    def delete_installment(self, record_id: int, installment_id: Any) -> Tuple[MemberRecord, Dict[str, Any]]:
        """
        Remove one installment by its local id and recompute totals.

        Raises:
            NotFoundError: record or installment does not exist
        """
        record = self.get_record(record_id)
        existing = record.installments
        target = str(installment_id)

        removed = next((i for i in existing if str(i.get("id")) == target), None)
        if removed is None:
            raise NotFoundError("Payment installment", installment_id)

        self._apply(record, [i for i in existing if str(i.get("id")) != target])

        logger.info(
            f"Deleted payment {target} ({removed.get('amount')}) from member record {record.id}",
            extra={"member_record_id": record.id, "installment_id": target},
        )
        return record, removed

    def clear_installments(self, record_id: int) -> MemberRecord:
        """Correction utility: drop the whole log and zero paid_amount."""
        record = self.get_record(record_id)
        self._apply(record, [])
        logger.info(f"Cleared payment history of member record {record.id}")
        return record
