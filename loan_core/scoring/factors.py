"""
Risk Scoring Model: 9 Factor Definitions

Each factor:
  1. Takes raw input from the applicant snapshot or financial history
  2. Maps it to a bucket
  3. Returns a score in [0, 100]

Weights are applied in the engine, not here.

Convention: HIGHER score = LOWER risk.
"""
from __future__ import annotations

from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Optional, Union

from loan_core.schemas.risk import CreditHistory, PaymentHistory

Number = Union[Decimal, int, float]


def _clamp(score: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, score))


def _key(value):
    return value.value if isinstance(value, Enum) else value


def _ratio_percent(debts: Optional[Number], income: Optional[Number]) -> float:
    """debts / income * 100; infinite when there is debt but no income."""
    debt = float(debts or 0)
    earned = float(income or 0)
    if earned <= 0:
        return 0.0 if debt == 0 else float("inf")
    return debt / earned * 100


# ═══════════════════════════════════════════════════════════════
# 1. CREDIT SCORE  (weight = 0.25)
#    Prior loan outcomes from the lender's own book
# ═══════════════════════════════════════════════════════════════
def assess_credit_score(credit_history: Optional[CreditHistory]) -> float:
    if credit_history is None:
        return 50

    score = 50
    if credit_history.successful_loans > 0:
        score += min(credit_history.successful_loans * 10, 30)
    if credit_history.defaulted_loans > 0:
        score -= credit_history.defaulted_loans * 20
    if credit_history.late_payments > 0:
        score -= min(credit_history.late_payments * 5, 25)

    return _clamp(score)


# ═══════════════════════════════════════════════════════════════
# 2. PAYMENT HISTORY  (weight = 0.20)
# ═══════════════════════════════════════════════════════════════
def assess_payment_history(payment_history: Optional[PaymentHistory]) -> float:
    if payment_history is None:
        return 60

    score = 60
    if payment_history.total_payments > 0:
        on_time_rate = payment_history.on_time_payments / payment_history.total_payments * 100
        score = 20 + on_time_rate * 0.8

    return _clamp(score)


# ═══════════════════════════════════════════════════════════════
# 3. EXISTING LOANS  (weight = 0.15)
#    Debt burden relative to monthly income
# ═══════════════════════════════════════════════════════════════
def assess_existing_loans(existing_debts: Optional[Number], monthly_income: Optional[Number]) -> float:
    if not existing_debts:
        return 100

    ratio = _ratio_percent(existing_debts, monthly_income)
    if ratio <= 20:
        return 100
    elif ratio <= 40:
        return 80
    elif ratio <= 60:
        return 60
    elif ratio <= 80:
        return 40
    else:
        return 20


# ═══════════════════════════════════════════════════════════════
# 4. INCOME STABILITY  (weight = 0.15)
# ═══════════════════════════════════════════════════════════════
INCOME_STABILITY_BASE = MappingProxyType({
    "employed": 85,
    "self_employed": 70,
    "retired": 60,
    "student": 30,
    "unemployed": 20,
})


def assess_income_stability(employment_status: Optional[str], monthly_income: Optional[Number]) -> float:
    score = INCOME_STABILITY_BASE.get(_key(employment_status), 40)

    income = float(monthly_income or 0)
    if income >= 100_000:
        score += 10
    elif income >= 50_000:
        score += 5
    elif income < 20_000:
        score -= 10

    return _clamp(score)


# ═══════════════════════════════════════════════════════════════
# 5. DEBT-TO-INCOME RATIO  (weight = 0.10)
# ═══════════════════════════════════════════════════════════════
def assess_debt_to_income_ratio(existing_debts: Optional[Number], monthly_income: Optional[Number]) -> float:
    if not monthly_income or float(monthly_income) <= 0:
        # No verifiable income: worst bucket
        return 20

    ratio = _ratio_percent(existing_debts, monthly_income)
    if ratio <= 15:
        return 100
    elif ratio <= 25:
        return 90
    elif ratio <= 35:
        return 75
    elif ratio <= 45:
        return 60
    elif ratio <= 55:
        return 40
    else:
        return 20


# ═══════════════════════════════════════════════════════════════
# 6. EMPLOYMENT HISTORY  (weight = 0.05)
#    Status only; tenure is not captured on the application
# ═══════════════════════════════════════════════════════════════
EMPLOYMENT_HISTORY_SCORES = MappingProxyType({
    "employed": 90,
    "self_employed": 75,
    "retired": 70,
    "student": 40,
    "unemployed": 10,
})


def assess_employment_history(employment_status: Optional[str]) -> float:
    return EMPLOYMENT_HISTORY_SCORES.get(_key(employment_status), 50)


# ═══════════════════════════════════════════════════════════════
# 7. COLLATERAL VALUE  (weight = 0.05)
#    Coverage bucket × liquidity of the collateral type
# ═══════════════════════════════════════════════════════════════
COLLATERAL_TYPE_FACTOR = MappingProxyType({
    "property": 1.2,
    "fixed_deposit": 1.1,
    "gold": 1.0,
    "vehicle": 0.9,
    "business_assets": 0.8,
    "guarantee": 0.7,
})

COVERAGE_BUCKETS = ((150, 100), (120, 90), (100, 80), (80, 70), (60, 60))


def assess_collateral_value(
    collateral_type: Optional[str],
    collateral_value: Optional[Number],
    loan_amount: Number,
) -> float:
    if not collateral_type or _key(collateral_type) == "none":
        return 20
    if not collateral_value:
        return 30

    coverage = float(collateral_value) / float(loan_amount) * 100
    score = 40
    for threshold, bucket_score in COVERAGE_BUCKETS:
        if coverage >= threshold:
            score = bucket_score
            break

    return min(100, score * COLLATERAL_TYPE_FACTOR.get(_key(collateral_type), 0.6))


# ═══════════════════════════════════════════════════════════════
# 8. GUARANTOR STRENGTH  (weight = 0.03)
#    Presence only: no guarantor verification service exists yet
# ═══════════════════════════════════════════════════════════════
def assess_guarantor_strength(guarantor_name: Optional[str], guarantor_phone: Optional[str]) -> float:
    if not guarantor_name or not guarantor_phone:
        return 40
    return 70


# ═══════════════════════════════════════════════════════════════
# 9. KYC COMPLETENESS  (weight = 0.02)
# ═══════════════════════════════════════════════════════════════
KYC_SCORES = MappingProxyType({
    "approved": 100,
    "pending": 50,
    "rejected": 0,
})


def assess_kyc_completeness(kyc_status: Optional[str]) -> float:
    return KYC_SCORES.get(_key(kyc_status), 20)
