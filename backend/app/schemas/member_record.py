"""
Member Record Pydantic Schemas

Request and response models for the member ledger admin API.
Money fields are Decimals (serialized as strings in JSON).
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


# ============================================================================
# Installments
# ============================================================================

class InstallmentCreate(BaseModel):
    """A payment to append to a member record's ledger"""
    amount: Decimal
    payment_mode: Optional[str] = Field(None, max_length=20)
    notes: Optional[str] = None
    paid_at: Optional[datetime] = None

    @field_validator("payment_mode", "notes", mode="before")
    @classmethod
    def strip_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("payment_mode")
    @classmethod
    def upper_mode(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class PaymentInstallment(BaseModel):
    """One entry of payment_installments as stored"""
    id: int
    amount: Decimal
    payment_mode: str
    notes: str = ""
    paid_at: Optional[datetime] = None
    recorded_by: Optional[str] = None


# ============================================================================
# Member Record Requests
# ============================================================================

class MemberRecordCreate(BaseModel):
    """
    Manual (walk-in) member entry.

    paid_amount without payment_installments becomes a single opening
    balance installment. When both are given they must agree.
    """
    name: str = Field(..., max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    plan_name: Optional[str] = Field(None, max_length=255)
    plan_total_amount: Decimal = Field(Decimal("0"), ge=0)
    paid_amount: Optional[Decimal] = Field(None, ge=0)
    payment_installments: Optional[List[InstallmentCreate]] = None
    membership_start_date: Optional[date] = None
    membership_end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @field_validator(
        "email", "phone", "plan_name", "notes", "membership_start_date", "membership_end_date",
        mode="before",
    )
    @classmethod
    def strip_blank(cls, v):
        return _blank_to_none(v)

    @model_validator(mode="after")
    def check_consistency(self):
        if (
            self.membership_start_date
            and self.membership_end_date
            and self.membership_end_date < self.membership_start_date
        ):
            raise ValueError("membership_end_date cannot be before membership_start_date")
        if self.payment_installments and self.paid_amount is not None:
            total = sum((i.amount for i in self.payment_installments), Decimal("0"))
            if total != self.paid_amount:
                raise ValueError("paid_amount must equal the sum of payment_installments")
        return self


class MemberRecordUpdate(BaseModel):
    """
    Edit a member record.

    Payments are not editable here; use the payment endpoints.
    Fields left out of the body are left unchanged.
    """
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)
    plan_name: Optional[str] = Field(None, max_length=255)
    plan_total_amount: Optional[Decimal] = Field(None, ge=0)
    membership_start_date: Optional[date] = None
    membership_end_date: Optional[date] = None
    notes: Optional[str] = None

    @field_validator(
        "email", "phone", "plan_name", "notes", "membership_start_date", "membership_end_date",
        mode="before",
    )
    @classmethod
    def strip_blank(cls, v):
        return _blank_to_none(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Name cannot be empty")
        return v.strip() if v else v


# ============================================================================
# Member Record Responses
# ============================================================================

class MemberRecordResponse(BaseModel):
    """Full member record with linked account details"""
    id: int
    user_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    plan_name: Optional[str] = None
    plan_total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payment_installments: List[PaymentInstallment] = []
    membership_start_date: Optional[date] = None
    membership_end_date: Optional[date] = None
    notes: Optional[str] = None
    is_signed_up: bool
    created_at: datetime
    updated_at: datetime

    # Linked app account (when signed up)
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_phone: Optional[str] = None
    user_avatar: Optional[str] = None


class MemberRecordListItem(MemberRecordResponse):
    """Listing row"""
    sr_no: int
    subscription_status: str


class MemberRecordStats(BaseModel):
    total: int = 0
    signed_up: int = 0
    not_signed_up: int = 0
    pending_payments: int = 0
    fully_paid: int = 0
    active_subscriptions: int = 0
    expired_subscriptions: int = 0
    no_subscription: int = 0
    expiring_soon: int = 0
    total_revenue: Decimal = Decimal("0")
    collected_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")


class MemberRecordListResponse(BaseModel):
    records: List[MemberRecordListItem]
    stats: MemberRecordStats
    synced: Optional[int] = Field(None, description="Rows synced by this request, None when throttled")


class PaymentHistoryResponse(BaseModel):
    record_id: int
    name: str
    plan_total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    payments: List[PaymentInstallment]


class PaymentRecordedResponse(BaseModel):
    success: bool = True
    record: MemberRecordResponse
    payment: PaymentInstallment


class PaymentDeletedResponse(BaseModel):
    success: bool = True
    record: MemberRecordResponse
    deleted_payment: PaymentInstallment


# ============================================================================
# Sync & Bulk Actions
# ============================================================================

class SyncReportResponse(BaseModel):
    total_users: int
    created: int
    updated: int
    skipped: int
    failed: int
    orphans_removed: int
    synced: int
    details: List[str] = []


class BulkActionResponse(BaseModel):
    success: bool = True
    action: str
    message: str
    affected: int = 0
    sync: Optional[SyncReportResponse] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
