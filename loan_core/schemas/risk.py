"""
Risk assessment inputs and outputs.

The scorer never touches the database: the orchestrator flattens the
application, the customer's KYC status and the financial-history snapshot
into these models first.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RiskLevel(str, Enum):
    VERY_LOW = "very_low"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


# ── Financial history (external collaborator snapshot) ──

class CreditHistory(BaseModel):
    successful_loans: int = 0
    defaulted_loans: int = 0
    late_payments: int = 0


class PaymentHistory(BaseModel):
    total_payments: int = 0
    on_time_payments: int = 0
    late_payments: int = 0


class FinancialHistory(BaseModel):
    credit_history: Optional[CreditHistory] = None
    payment_history: Optional[PaymentHistory] = None


class ApplicantSnapshot(BaseModel):
    """Everything the nine factors read, taken from application + customer."""
    application_id: int
    customer_id: int
    requested_amount: Decimal
    employment_status: Optional[str] = None
    monthly_income: Optional[Decimal] = None
    existing_debts: Optional[Decimal] = None
    collateral_type: Optional[str] = None
    collateral_value: Optional[Decimal] = None
    guarantor_name: Optional[str] = None
    guarantor_phone: Optional[str] = None
    kyc_status: Optional[str] = None


# ── Scorer output ──

class Recommendation(BaseModel):
    type: str
    priority: str
    message: str
    action: str


class AIInsights(BaseModel):
    fraud_score: int = 0
    # Placeholders for signals without a real model behind them
    behavioral_score: Optional[int] = None
    market_risk_score: Optional[int] = None
    notes: list[str] = []


class RiskEvaluation(BaseModel):
    overall_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    risk_factors: dict[str, float]
    recommendations: list[Recommendation]
    ai_insights: AIInsights


class RiskAssessmentView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    application_id: int
    customer_id: int
    overall_score: int
    risk_level: RiskLevel
    risk_factors: dict[str, float]
    recommendations: list[Recommendation]
    ai_insights: AIInsights
    assessed_by: int
    created_at: Optional[datetime] = None
