"""
Loan application payloads and read models.

Inbound payloads (create / update) are validated here for shape and numeric
bounds. Product bounds and KYC status need the database and are enforced by
the application manager.
"""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Enums matching the lending domain ──

class LoanStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    # Downstream lifecycle, owned by servicing
    DISBURSED = "disbursed"
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"
    WRITTEN_OFF = "written_off"


class PaymentFrequency(str, Enum):
    WEEKLY = "weekly"
    BI_WEEKLY = "bi_weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"


class EmploymentStatus(str, Enum):
    EMPLOYED = "employed"
    SELF_EMPLOYED = "self_employed"
    RETIRED = "retired"
    STUDENT = "student"
    UNEMPLOYED = "unemployed"
    OTHER = "other"


class CollateralType(str, Enum):
    NONE = "none"
    PROPERTY = "property"
    VEHICLE = "vehicle"
    GOLD = "gold"
    FIXED_DEPOSIT = "fixed_deposit"
    GUARANTEE = "guarantee"
    BUSINESS_ASSETS = "business_assets"
    OTHER = "other"


class KYCStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


EDITABLE_STATUSES = frozenset({LoanStatus.DRAFT, LoanStatus.SUBMITTED})
REVIEWABLE_STATUSES = frozenset({LoanStatus.SUBMITTED, LoanStatus.UNDER_REVIEW, LoanStatus.PENDING_APPROVAL})

LOAN_STATUS_LABELS = {
    LoanStatus.DRAFT: "Draft",
    LoanStatus.SUBMITTED: "Submitted",
    LoanStatus.UNDER_REVIEW: "Under Review",
    LoanStatus.PENDING_APPROVAL: "Pending Approval",
    LoanStatus.APPROVED: "Approved",
    LoanStatus.REJECTED: "Rejected",
    LoanStatus.DISBURSED: "Disbursed",
    LoanStatus.ACTIVE: "Active",
    LoanStatus.COMPLETED: "Completed",
    LoanStatus.DEFAULTED: "Defaulted",
    LoanStatus.WRITTEN_OFF: "Written Off",
}

PAYMENT_FREQUENCY_LABELS = {
    PaymentFrequency.WEEKLY: "Weekly",
    PaymentFrequency.BI_WEEKLY: "Bi-weekly",
    PaymentFrequency.MONTHLY: "Monthly",
    PaymentFrequency.QUARTERLY: "Quarterly",
}

COLLATERAL_TYPE_LABELS = {
    CollateralType.NONE: "No Collateral",
    CollateralType.PROPERTY: "Property/Real Estate",
    CollateralType.VEHICLE: "Vehicle",
    CollateralType.GOLD: "Gold/Jewelry",
    CollateralType.FIXED_DEPOSIT: "Fixed Deposit",
    CollateralType.GUARANTEE: "Personal Guarantee",
    CollateralType.BUSINESS_ASSETS: "Business Assets",
    CollateralType.OTHER: "Other",
}


# ── Sub-models ──

class Collateral(BaseModel):
    type: CollateralType = CollateralType.NONE
    value: Decimal = Field(Decimal("0"), ge=0)
    description: Optional[str] = None

    @model_validator(mode="after")
    def _value_required_when_pledged(self) -> "Collateral":
        if self.type != CollateralType.NONE and self.value <= 0:
            raise ValueError("Collateral value is required when collateral type is specified")
        return self


class Guarantor(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    relationship: Optional[str] = None


# ── Inbound payloads ──

class LoanApplicationCreate(BaseModel):
    customer_id: int
    product_id: int
    requested_amount: Decimal = Field(gt=0)
    term_months: int = Field(ge=1, le=240)
    interest_rate: Optional[Decimal] = Field(None, ge=0, description="Annual rate in percent; product rate if omitted")
    payment_frequency: Optional[PaymentFrequency] = None
    purpose: str = Field(min_length=1)
    employment_status: EmploymentStatus
    monthly_income: Decimal = Field(gt=0)
    existing_debts: Decimal = Field(Decimal("0"), ge=0)
    collateral: Collateral = Field(default_factory=Collateral)
    guarantor: Guarantor = Field(default_factory=Guarantor)
    proposed_start_date: Optional[date] = None
    branch_id: Optional[int] = None


class LoanApplicationUpdate(BaseModel):
    """Partial patch; only fields explicitly sent are applied."""
    requested_amount: Optional[Decimal] = Field(None, gt=0)
    term_months: Optional[int] = Field(None, ge=1, le=240)
    interest_rate: Optional[Decimal] = Field(None, ge=0)
    payment_frequency: Optional[PaymentFrequency] = None
    purpose: Optional[str] = Field(None, min_length=1)
    employment_status: Optional[EmploymentStatus] = None
    monthly_income: Optional[Decimal] = Field(None, gt=0)
    existing_debts: Optional[Decimal] = Field(None, ge=0)
    collateral: Optional[Collateral] = None
    guarantor: Optional[Guarantor] = None
    proposed_start_date: Optional[date] = None


SCHEDULE_FIELDS = frozenset({
    "requested_amount", "term_months", "interest_rate", "payment_frequency", "proposed_start_date",
})


# ── Read models ──

class PaymentScheduleEntryView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_number: int
    due_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal
    status: str


class LoanApplicationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    application_code: str
    customer_id: int
    product_id: int
    requested_amount: Decimal
    term_months: int
    interest_rate: Decimal
    payment_frequency: PaymentFrequency
    periodic_payment: Decimal
    processing_fee: Decimal
    total_amount: Decimal
    purpose: str
    employment_status: EmploymentStatus
    monthly_income: Decimal
    existing_debts: Decimal
    collateral_type: CollateralType
    collateral_value: Decimal
    collateral_description: Optional[str] = None
    guarantor_name: Optional[str] = None
    guarantor_phone: Optional[str] = None
    guarantor_relationship: Optional[str] = None
    proposed_start_date: date
    status: LoanStatus
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    branch_id: int
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def status_display(self) -> str:
        return LOAN_STATUS_LABELS.get(self.status, self.status.value)
