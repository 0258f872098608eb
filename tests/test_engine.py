"""
Integration tests for the full scoring engine.
"""
from decimal import Decimal

import pytest

from loan_core.schemas.risk import (
    ApplicantSnapshot, CreditHistory, FinancialHistory, PaymentHistory, RiskLevel,
)
from loan_core.scoring.engine import (
    FACTOR_WEIGHTS,
    calculate_fraud_score,
    calculate_overall_score,
    determine_risk_level,
    evaluate,
    generate_recommendations,
)


def _make_snapshot(**overrides) -> ApplicantSnapshot:
    """Baseline salaried applicant with no collateral or guarantor."""
    fields = {
        "application_id": 1,
        "customer_id": 1,
        "requested_amount": Decimal("50000"),
        "employment_status": "employed",
        "monthly_income": Decimal("40000"),
        "existing_debts": Decimal("5000"),
        "collateral_type": "none",
        "collateral_value": Decimal("0"),
        "kyc_status": "approved",
    }
    fields.update(overrides)
    return ApplicantSnapshot(**fields)


EMPTY_HISTORY = FinancialHistory(credit_history=CreditHistory(), payment_history=PaymentHistory())


class TestWeights:
    def test_sum_to_one(self):
        assert sum(FACTOR_WEIGHTS.values()) == pytest.approx(1.0)

    def test_nine_factors(self):
        assert len(FACTOR_WEIGHTS) == 9

    def test_immutable(self):
        with pytest.raises(TypeError):
            FACTOR_WEIGHTS["credit_score"] = 0.5


class TestOverallScore:
    def test_documented_weighted_average(self):
        scores = {
            "credit_score": 50, "payment_history": 60, "existing_loans": 100,
            "income_stability": 80, "debt_to_income_ratio": 90, "employment_history": 75,
            "collateral_value": 20, "guarantor_strength": 40, "kyc_completeness": 100,
        }
        # 12.5 + 12 + 15 + 12 + 9 + 3.75 + 1 + 1.2 + 2 = 68.45
        assert calculate_overall_score(scores) == 68

    def test_rounds_half_up(self):
        assert calculate_overall_score({"credit_score": 72.5}) == 73

    def test_unknown_factors_ignored(self):
        assert calculate_overall_score({"credit_score": 80, "astrology": 0}) == 80

    def test_no_known_factors(self):
        assert calculate_overall_score({}) == 50


class TestRiskLevel:
    @pytest.mark.parametrize("score, level", [
        (100, RiskLevel.VERY_LOW), (90, RiskLevel.VERY_LOW),
        (89, RiskLevel.LOW), (75, RiskLevel.LOW),
        (74, RiskLevel.MEDIUM), (60, RiskLevel.MEDIUM),
        (59, RiskLevel.HIGH), (40, RiskLevel.HIGH),
        (39, RiskLevel.VERY_HIGH), (0, RiskLevel.VERY_HIGH),
    ])
    def test_buckets(self, score, level):
        assert determine_risk_level(score) == level


class TestRecommendations:
    def test_level_recommendation_first(self):
        recs = generate_recommendations(RiskLevel.VERY_LOW, {
            "debt_to_income_ratio": 100, "collateral_value": 100, "income_stability": 100,
        })
        assert [r.type for r in recs] == ["approval"]

    def test_factor_flags(self):
        recs = generate_recommendations(RiskLevel.MEDIUM, {
            "debt_to_income_ratio": 40, "collateral_value": 20, "income_stability": 50,
        })
        assert [r.type for r in recs] == ["conditional", "concern", "requirement", "verification"]

    def test_very_high_recommends_rejection(self):
        recs = generate_recommendations(RiskLevel.VERY_HIGH, {
            "debt_to_income_ratio": 100, "collateral_value": 100, "income_stability": 100,
        })
        assert recs[0].type == "rejection"


class TestFraudScore:
    def test_clean_applicant(self):
        assert calculate_fraud_score(_make_snapshot()) == 0

    def test_income_far_above_amount(self):
        assert calculate_fraud_score(_make_snapshot(monthly_income=Decimal("120000"))) == 10

    def test_unemployed_large_request(self):
        snapshot = _make_snapshot(
            requested_amount=Decimal("2000000"), employment_status="unemployed", monthly_income=Decimal("10000"),
        )
        assert calculate_fraud_score(snapshot) == 30


class TestEvaluate:
    def test_baseline_applicant(self):
        result = evaluate(_make_snapshot(), EMPTY_HISTORY)
        assert result.risk_factors == {
            "credit_score": 50,
            "payment_history": 60,
            "existing_loans": 100,
            "income_stability": 85,
            "debt_to_income_ratio": 100,
            "employment_history": 90,
            "collateral_value": 20,
            "guarantor_strength": 40,
            "kyc_completeness": 100,
        }
        # 12.5 + 12 + 15 + 12.75 + 10 + 4.5 + 1 + 1.2 + 2 = 70.95
        assert result.overall_score == 71
        assert result.risk_level == RiskLevel.MEDIUM
        assert [r.type for r in result.recommendations] == ["conditional", "requirement"]

    def test_insights_have_no_placeholder_scores(self):
        result = evaluate(_make_snapshot(), EMPTY_HISTORY)
        assert result.ai_insights.fraud_score == 0
        assert result.ai_insights.behavioral_score is None
        assert result.ai_insights.market_risk_score is None
        assert result.ai_insights.notes

    def test_strong_applicant_is_low_risk(self):
        history = FinancialHistory(
            credit_history=CreditHistory(successful_loans=3),
            payment_history=PaymentHistory(total_payments=36, on_time_payments=36),
        )
        snapshot = _make_snapshot(
            monthly_income=Decimal("150000"),
            existing_debts=Decimal("0"),
            collateral_type="property",
            collateral_value=Decimal("100000"),
            guarantor_name="Jane Doe",
            guarantor_phone="+254700000000",
        )
        result = evaluate(snapshot, history)
        assert result.risk_level in (RiskLevel.VERY_LOW, RiskLevel.LOW)

    def test_missing_history_is_neutral(self):
        result = evaluate(_make_snapshot(), FinancialHistory())
        assert result.risk_factors["credit_score"] == 50
        assert result.risk_factors["payment_history"] == 60

    def test_deterministic(self):
        first = evaluate(_make_snapshot(), EMPTY_HISTORY)
        second = evaluate(_make_snapshot(), EMPTY_HISTORY)
        assert first == second
