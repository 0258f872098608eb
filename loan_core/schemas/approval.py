"""
Approval workflow payloads and results.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from loan_core.schemas.loan import LoanStatus


class Role(str, Enum):
    LOAN_OFFICER = "loan_officer"
    BRANCH_MANAGER = "branch_manager"
    FINANCE_MANAGER = "finance_manager"
    CEO = "ceo"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"
    CANCELLED = "cancelled"


class Decision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


APPROVAL_STATUS_LABELS = {
    ApprovalStatus.PENDING: "Pending Review",
    ApprovalStatus.APPROVED: "Approved",
    ApprovalStatus.REJECTED: "Rejected",
    ApprovalStatus.ESCALATED: "Escalated",
    ApprovalStatus.CANCELLED: "Cancelled",
}


class ApprovalStep(BaseModel):
    """One entry of the chain required for a given amount."""
    model_config = ConfigDict(frozen=True)

    level: int
    role: Role
    is_required: bool = True


class ApprovalDecision(BaseModel):
    decision: Decision
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None


class BulkApprovalItem(ApprovalDecision):
    application_id: int
    approval_level: int = Field(ge=1)


class PendingApprovalFilters(BaseModel):
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    submitted_after: Optional[datetime] = None


# ── Results ──

class ApprovalRecordView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    application_id: int
    level: int
    required_role: Role
    status: ApprovalStatus
    approved_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_required: bool = True


class ApprovalOutcome(BaseModel):
    approval: ApprovalRecordView
    application_status: LoanStatus
    workflow_complete: bool
    next_steps: list[str] = []


class EscalationResult(BaseModel):
    escalated_to_level: int
    required_role: Role
    escalation_approval: ApprovalRecordView
    created: bool = Field(description="False when an existing record at the level was reset to pending")
    reason: str


class BulkApprovalSuccess(BaseModel):
    application_id: int
    result: ApprovalOutcome


class BulkApprovalFailure(BaseModel):
    application_id: int
    error: str
    code: Optional[str] = None


class BulkApprovalSummary(BaseModel):
    total: int = 0
    approved: int = 0
    rejected: int = 0
    failed: int = 0


class BulkApprovalResult(BaseModel):
    successful: list[BulkApprovalSuccess] = []
    failed: list[BulkApprovalFailure] = []
    summary: BulkApprovalSummary = Field(default_factory=BulkApprovalSummary)


class PendingApprovalItem(BaseModel):
    approval_id: int
    level: int
    required_role: Role
    application_id: int
    application_code: str
    amount: Decimal
    term_months: int
    submitted_at: Optional[datetime] = None
    application_status: LoanStatus
    customer_id: int
    branch_id: int


class WorkflowStepView(BaseModel):
    id: int
    level: int
    required_role: Role
    step_description: str
    status: ApprovalStatus
    status_display: str
    approved_by: Optional[int] = None
    decided_at: Optional[datetime] = None
    comments: Optional[str] = None
    rejection_reason: Optional[str] = None
    is_required: bool
    can_approve: bool
