"""
Append-only risk assessment history (loan_risk_assessments).

The current assessment of an application is simply its newest row. Rows are
never updated or deleted; ORM listeners below block both.
"""
from datetime import datetime, timezone

import structlog
from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, event

from loan_core.core.errors import ImmutableRecordError
from loan_core.models.database import Base

logger = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskAssessment(Base):
    __tablename__ = "loan_risk_assessments"

    id = Column(Integer, primary_key=True)
    application_id = Column(
        Integer, ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    # ── Scoring outputs ──
    overall_score = Column(Integer, nullable=False)
    risk_level = Column(String(20), nullable=False, index=True)

    # ── Factor breakdown (JSON for flexibility) ──
    risk_factors = Column(JSON, nullable=False)
    recommendations = Column(JSON, nullable=False)
    ai_insights = Column(JSON, nullable=True)

    # ── Metadata ──
    assessed_by = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<RiskAssessment {self.id} level={self.risk_level} score={self.overall_score}>"


@event.listens_for(RiskAssessment, "before_update")
def _block_update(mapper, connection, target):
    logger.error("immutability_violation_blocked", entity_type="RiskAssessment", entity_id=target.id, operation="UPDATE")
    raise ImmutableRecordError("RiskAssessment", target.id)


@event.listens_for(RiskAssessment, "before_delete")
def _block_delete(mapper, connection, target):
    logger.error("immutability_violation_blocked", entity_type="RiskAssessment", entity_id=target.id, operation="DELETE")
    raise ImmutableRecordError("RiskAssessment", target.id)
