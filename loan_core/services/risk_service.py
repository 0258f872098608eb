"""
Risk Assessment Orchestrator

Loads the application, the customer's KYC status and a financial-history
snapshot, hands them to the pure scorer, and appends the result to the
assessment history together with its audit entry.
"""
from __future__ import annotations

from typing import Any, Optional

import structlog

from loan_core.core.errors import NotFoundError
from loan_core.models.risk_assessment import RiskAssessment
from loan_core.schemas.risk import ApplicantSnapshot, RiskAssessmentView
from loan_core.scoring import engine
from loan_core.services.collaborators import EmptyFinancialHistory, FinancialHistoryProvider
from loan_core.services.unit_of_work import UnitOfWork

logger = structlog.get_logger()

RESOURCE = "loan_risk_assessment"

FACTOR_GROUPS = {
    "credit_score": "credit_history",
    "payment_history": "credit_history",
    "existing_loans": "credit_history",
    "income_stability": "income_and_employment",
    "debt_to_income_ratio": "income_and_employment",
    "employment_history": "income_and_employment",
    "collateral_value": "collateral_and_guarantor",
    "guarantor_strength": "collateral_and_guarantor",
    "kyc_completeness": "behavioral",
}


def risk_levels() -> dict[str, dict[str, Any]]:
    """Display metadata per risk level, keyed by level value."""
    return {level.value: dict(info) for level, info in engine.RISK_LEVEL_INFO.items()}


def risk_factors() -> dict[str, dict[str, Any]]:
    return {
        name: {"weight": weight, "max_score": 100, "group": FACTOR_GROUPS[name]}
        for name, weight in engine.FACTOR_WEIGHTS.items()
    }


class RiskAssessmentOrchestrator:

    def __init__(self, session_factory, history_provider: Optional[FinancialHistoryProvider] = None):
        self._session_factory = session_factory
        self.history_provider = history_provider or EmptyFinancialHistory()

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory)

    async def perform_risk_assessment(self, application_id: int, actor_id: int) -> RiskAssessmentView:
        async with self._uow() as uow:
            application = await uow.loans.get_application(application_id)
            if application is None:
                raise NotFoundError("Loan application", application_id)

            customer = await uow.customers.get_customer(application.customer_id)
            history = await self.history_provider.get_history(application.customer_id)

            snapshot = ApplicantSnapshot(
                application_id=application.id,
                customer_id=application.customer_id,
                requested_amount=application.requested_amount,
                employment_status=application.employment_status,
                monthly_income=application.monthly_income,
                existing_debts=application.existing_debts,
                collateral_type=application.collateral_type,
                collateral_value=application.collateral_value,
                guarantor_name=application.guarantor_name,
                guarantor_phone=application.guarantor_phone,
                kyc_status=customer.kyc_status if customer is not None else None,
            )
            evaluation = engine.evaluate(snapshot, history)

            assessment = await uow.loans.add_risk_assessment(RiskAssessment(
                application_id=application.id,
                customer_id=application.customer_id,
                overall_score=evaluation.overall_score,
                risk_level=evaluation.risk_level.value,
                risk_factors=evaluation.risk_factors,
                recommendations=[r.model_dump(mode="json") for r in evaluation.recommendations],
                ai_insights=evaluation.ai_insights.model_dump(mode="json"),
                assessed_by=actor_id,
            ))

            await uow.audit.record(actor_id, "risk_assessment_completed", RESOURCE, assessment.id, {
                "application_id": application.id,
                "overall_score": evaluation.overall_score,
                "risk_level": evaluation.risk_level.value,
            })
            view = RiskAssessmentView.model_validate(assessment)

        logger.info(
            "risk_assessment_persisted",
            application_id=application_id,
            assessment_id=view.id,
            risk_level=view.risk_level.value,
        )
        return view

    async def get_risk_assessment(self, application_id: int) -> Optional[RiskAssessmentView]:
        """Most recent assessment, or None if the application was never assessed."""
        async with self._uow() as uow:
            assessment = await uow.loans.latest_risk_assessment(application_id)
            return RiskAssessmentView.model_validate(assessment) if assessment is not None else None

    async def list_risk_assessments(self, application_id: int) -> list[RiskAssessmentView]:
        async with self._uow() as uow:
            assessments = await uow.loans.list_risk_assessments(application_id)
            return [RiskAssessmentView.model_validate(a) for a in assessments]
