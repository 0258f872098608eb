"""
Risk Scoring Engine

Orchestrates:
  1. All 9 factor scores
  2. Weighted average → overall score (0-100, rounded half up)
  3. Risk level bucket
  4. Recommendations (level-keyed + factor flags)
  5. Auxiliary insights (deterministic fraud indicators)

Pure: no I/O. Called by the risk assessment orchestrator.
"""
from __future__ import annotations

import math
from types import MappingProxyType
from typing import Mapping

import structlog

from loan_core.schemas.risk import (
    AIInsights,
    ApplicantSnapshot,
    FinancialHistory,
    Recommendation,
    RiskEvaluation,
    RiskLevel,
)
from loan_core.scoring import factors

logger = structlog.get_logger()


# ═══════════════════════════════════════════════════════════════
# Factor weights, must sum to 1.0
# ═══════════════════════════════════════════════════════════════
FACTOR_WEIGHTS: Mapping[str, float] = MappingProxyType({
    "credit_score": 0.25,
    "payment_history": 0.20,
    "existing_loans": 0.15,
    "income_stability": 0.15,
    "debt_to_income_ratio": 0.10,
    "employment_history": 0.05,
    "collateral_value": 0.05,
    "guarantor_strength": 0.03,
    "kyc_completeness": 0.02,
})
assert abs(sum(FACTOR_WEIGHTS.values()) - 1.0) < 1e-9, "Weights must sum to 1.0"


# ═══════════════════════════════════════════════════════════════
# Risk level thresholds
#   score >= 90  → very_low
#   score >= 75  → low
#   score >= 60  → medium
#   score >= 40  → high
#   otherwise    → very_high
# ═══════════════════════════════════════════════════════════════
LEVEL_THRESHOLDS = [
    (90, RiskLevel.VERY_LOW),
    (75, RiskLevel.LOW),
    (60, RiskLevel.MEDIUM),
    (40, RiskLevel.HIGH),
]

RISK_LEVEL_INFO = MappingProxyType({
    RiskLevel.VERY_LOW: {"score": 100, "label": "Very Low Risk", "color": "#4CAF50"},
    RiskLevel.LOW: {"score": 80, "label": "Low Risk", "color": "#8BC34A"},
    RiskLevel.MEDIUM: {"score": 60, "label": "Medium Risk", "color": "#FFC107"},
    RiskLevel.HIGH: {"score": 40, "label": "High Risk", "color": "#FF9800"},
    RiskLevel.VERY_HIGH: {"score": 20, "label": "Very High Risk", "color": "#F44336"},
})

LEVEL_RECOMMENDATIONS = MappingProxyType({
    RiskLevel.VERY_LOW: Recommendation(
        type="approval", priority="high",
        message="Recommend approval with standard terms",
        action="Proceed with loan approval process",
    ),
    RiskLevel.LOW: Recommendation(
        type="approval", priority="medium",
        message="Recommend approval with standard terms",
        action="Minor documentation review recommended",
    ),
    RiskLevel.MEDIUM: Recommendation(
        type="conditional", priority="medium",
        message="Conditional approval - consider additional security",
        action="Require additional collateral or guarantor",
    ),
    RiskLevel.HIGH: Recommendation(
        type="review", priority="high",
        message="Requires senior management review",
        action="Detailed financial assessment needed",
    ),
    RiskLevel.VERY_HIGH: Recommendation(
        type="rejection", priority="high",
        message="Recommend rejection or significant risk mitigation",
        action="Consider alternative loan products or declined",
    ),
})

# (factor, flag below this score, recommendation)
FACTOR_FLAGS = (
    ("debt_to_income_ratio", 60, Recommendation(
        type="concern", priority="medium",
        message="High debt-to-income ratio detected",
        action="Verify all income sources and existing debts",
    )),
    ("collateral_value", 50, Recommendation(
        type="requirement", priority="medium",
        message="Insufficient collateral coverage",
        action="Require additional collateral or reduce loan amount",
    )),
    ("income_stability", 60, Recommendation(
        type="verification", priority="high",
        message="Income stability concerns",
        action="Verify employment and income documentation",
    )),
)

INSIGHT_NOTES = (
    "Consider seasonal income variations for self-employed applicants",
    "Monitor for early payment indicators",
    "Assess local economic conditions impact",
)


def evaluate(snapshot: ApplicantSnapshot, history: FinancialHistory) -> RiskEvaluation:
    """
    Main scoring entry point.
    """
    factor_scores = calculate_factor_scores(snapshot, history)
    overall = calculate_overall_score(factor_scores)
    level = determine_risk_level(overall)

    logger.info(
        "risk_evaluation_complete",
        application_id=snapshot.application_id,
        score=overall,
        risk_level=level.value,
    )

    return RiskEvaluation(
        overall_score=overall,
        risk_level=level,
        risk_factors=factor_scores,
        recommendations=generate_recommendations(level, factor_scores),
        ai_insights=generate_insights(snapshot),
    )


def calculate_factor_scores(snapshot: ApplicantSnapshot, history: FinancialHistory) -> dict[str, float]:
    return {
        "credit_score": factors.assess_credit_score(history.credit_history),
        "payment_history": factors.assess_payment_history(history.payment_history),
        "existing_loans": factors.assess_existing_loans(snapshot.existing_debts, snapshot.monthly_income),
        "income_stability": factors.assess_income_stability(snapshot.employment_status, snapshot.monthly_income),
        "debt_to_income_ratio": factors.assess_debt_to_income_ratio(snapshot.existing_debts, snapshot.monthly_income),
        "employment_history": factors.assess_employment_history(snapshot.employment_status),
        "collateral_value": factors.assess_collateral_value(
            snapshot.collateral_type, snapshot.collateral_value, snapshot.requested_amount,
        ),
        "guarantor_strength": factors.assess_guarantor_strength(snapshot.guarantor_name, snapshot.guarantor_phone),
        "kyc_completeness": factors.assess_kyc_completeness(snapshot.kyc_status),
    }


def calculate_overall_score(factor_scores: Mapping[str, float]) -> int:
    """
    Weighted average over the known factors present; unknown keys are ignored.
    Rounds half up so 72.5 → 73.
    """
    total_score = 0.0
    total_weight = 0.0
    for name, score in factor_scores.items():
        weight = FACTOR_WEIGHTS.get(name)
        if weight is None:
            continue
        total_score += score * weight
        total_weight += weight

    if total_weight <= 0:
        return 50
    return int(math.floor(total_score / total_weight + 0.5))


def determine_risk_level(score: float) -> RiskLevel:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return RiskLevel.VERY_HIGH


def generate_recommendations(level: RiskLevel, factor_scores: Mapping[str, float]) -> list[Recommendation]:
    recommendations = [LEVEL_RECOMMENDATIONS[level]]
    for factor_name, floor, recommendation in FACTOR_FLAGS:
        if factor_scores.get(factor_name, 0) < floor:
            recommendations.append(recommendation)
    return recommendations


# ═══════════════════════════════════════════════════════════════
# Auxiliary insights
# ═══════════════════════════════════════════════════════════════

def calculate_fraud_score(snapshot: ApplicantSnapshot) -> int:
    """
    Basic fraud indicators (0-100, higher = more suspicious).
    """
    score = 0
    income = float(snapshot.monthly_income or 0)
    amount = float(snapshot.requested_amount or 0)

    # Unusually high income vs loan amount
    if income > amount * 2:
        score += 10
    # High amount with no employment
    if amount > 1_000_000 and snapshot.employment_status == "unemployed":
        score += 30

    return min(100, score)


def generate_insights(snapshot: ApplicantSnapshot) -> AIInsights:
    return AIInsights(
        fraud_score=calculate_fraud_score(snapshot),
        notes=list(INSIGHT_NOTES),
    )
