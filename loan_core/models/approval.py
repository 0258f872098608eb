"""
One row per required approval level per application (loan_approvals).

Rows are never deleted: they move between pending / approved / rejected /
escalated / cancelled. Escalation may reset an existing row back to pending.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from loan_core.models.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApprovalRecord(Base):
    __tablename__ = "loan_approvals"

    id = Column(Integer, primary_key=True)
    application_id = Column(
        Integer, ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    level = Column(Integer, nullable=False)
    required_role = Column(String(30), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending", index=True)
    approved_by = Column(Integer, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    comments = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    is_required = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<ApprovalRecord app={self.application_id} level={self.level} status={self.status}>"
