"""
Loan products, applications and their amortization schedules.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint,
)

from loan_core.models.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LoanProduct(Base):
    __tablename__ = "loan_products"

    id = Column(Integer, primary_key=True)
    code = Column(String(20), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    min_amount = Column(Numeric(15, 2), nullable=False)
    max_amount = Column(Numeric(15, 2), nullable=False)
    min_term_months = Column(Integer, nullable=False)
    max_term_months = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    processing_fee_rate = Column(Numeric(5, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<LoanProduct {self.code} active={self.is_active}>"


class LoanApplication(Base):
    __tablename__ = "loan_applications"

    id = Column(Integer, primary_key=True)
    # Assigned right after the first flush, from the row id
    application_code = Column(String(20), nullable=True, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("loan_products.id"), nullable=False)

    # ── Terms ──
    requested_amount = Column(Numeric(15, 2), nullable=False)
    term_months = Column(Integer, nullable=False)
    interest_rate = Column(Numeric(5, 2), nullable=False)
    payment_frequency = Column(String(20), nullable=False, default="monthly")
    proposed_start_date = Column(Date, nullable=False)

    # ── Computed ──
    processing_fee = Column(Numeric(15, 2), nullable=False, default=0)
    total_amount = Column(Numeric(15, 2), nullable=False)
    periodic_payment = Column(Numeric(15, 2), nullable=False)

    # ── Applicant financials ──
    purpose = Column(Text, nullable=False)
    employment_status = Column(String(30), nullable=False)
    monthly_income = Column(Numeric(15, 2), nullable=False)
    existing_debts = Column(Numeric(15, 2), nullable=False, default=0)

    # ── Collateral / guarantor ──
    collateral_type = Column(String(30), nullable=False, default="none")
    collateral_value = Column(Numeric(15, 2), nullable=False, default=0)
    collateral_description = Column(Text, nullable=True)
    guarantor_name = Column(String(100), nullable=True)
    guarantor_phone = Column(String(20), nullable=True)
    guarantor_relationship = Column(String(50), nullable=True)

    # ── Workflow ──
    status = Column(String(20), nullable=False, default="draft", index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    branch_id = Column(Integer, nullable=False, index=True)
    created_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<LoanApplication {self.application_code} status={self.status} amount={self.requested_amount}>"


class PaymentScheduleEntry(Base):
    __tablename__ = "loan_payment_schedules"
    __table_args__ = (
        UniqueConstraint("application_id", "payment_number", name="uq_schedule_application_payment"),
    )

    id = Column(Integer, primary_key=True)
    application_id = Column(
        Integer, ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    payment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    payment_amount = Column(Numeric(15, 2), nullable=False)
    principal_amount = Column(Numeric(15, 2), nullable=False)
    interest_amount = Column(Numeric(15, 2), nullable=False)
    remaining_balance = Column(Numeric(15, 2), nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    paid_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<PaymentScheduleEntry app={self.application_id} #{self.payment_number} {self.payment_amount}>"
