"""
Loan Origination Core: composition root

    core = create_core()
    app = await core.applications.create(payload, actor_id=7)
    await core.applications.submit(app.id, actor_id=7)
    await core.approvals.process_approval(app.id, 1, "approved", actor_id=12)
    await core.close()

One engine and one session factory per process; every service shares them.
The routing layer that calls these services lives elsewhere.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from loan_core.core.config import Settings, get_settings
from loan_core.core.logging import configure_logging
from loan_core.models.database import create_engine, create_session_factory
from loan_core.services.approval_service import ApprovalWorkflowEngine
from loan_core.services.collaborators import FinancialHistoryProvider
from loan_core.services.loan_service import LoanApplicationManager
from loan_core.services.risk_service import RiskAssessmentOrchestrator

logger = structlog.get_logger()


@dataclass
class LoanCore:
    engine: AsyncEngine
    applications: LoanApplicationManager
    approvals: ApprovalWorkflowEngine
    risk: RiskAssessmentOrchestrator

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("loan_core_stopped")


def create_core(
    settings: Optional[Settings] = None,
    engine: Optional[AsyncEngine] = None,
    history_provider: Optional[FinancialHistoryProvider] = None,
) -> LoanCore:
    settings = settings or get_settings()
    configure_logging(settings)

    engine = engine or create_engine(settings.database_url, echo=settings.database_echo)
    session_factory = create_session_factory(engine)

    logger.info("loan_core_starting", app_name=settings.app_name, env=settings.app_env)
    return LoanCore(
        engine=engine,
        applications=LoanApplicationManager(session_factory, settings),
        approvals=ApprovalWorkflowEngine(session_factory, settings),
        risk=RiskAssessmentOrchestrator(session_factory, history_provider),
    )
