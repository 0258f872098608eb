"""
SQLAlchemy persistence for applications, schedules, approvals and risk
assessments.

Every method works on the session it was built with, so all reads and writes
of one operation share that session's transaction. Nothing here commits.
"""
from __future__ import annotations

from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from loan_core.models.approval import ApprovalRecord
from loan_core.models.loan_application import LoanApplication, LoanProduct, PaymentScheduleEntry
from loan_core.models.risk_assessment import RiskAssessment
from loan_core.schemas.approval import ApprovalStatus, ApprovalStep, PendingApprovalFilters
from loan_core.services.schedule_calculator import ScheduleEntry


class LoanRepository:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def flush(self) -> None:
        await self.session.flush()

    # ── Applications ──

    async def get_application(self, application_id: int, for_update: bool = False) -> Optional[LoanApplication]:
        stmt = select(LoanApplication).where(LoanApplication.id == application_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def add_application(self, application: LoanApplication, code_prefix: str, code_width: int) -> LoanApplication:
        """Insert and assign the sequential application code from the row id."""
        self.session.add(application)
        await self.session.flush()
        application.application_code = f"{code_prefix}{application.id:0{code_width}d}"
        await self.session.flush()
        return application

    async def get_product(self, product_id: int) -> Optional[LoanProduct]:
        return await self.session.get(LoanProduct, product_id)

    # ── Payment schedule ──

    async def replace_schedule(self, application_id: int, entries: Iterable[ScheduleEntry]) -> None:
        """Delete-all-then-reinsert; a schedule is never patched in place."""
        await self.session.execute(
            delete(PaymentScheduleEntry).where(PaymentScheduleEntry.application_id == application_id)
        )
        self.session.add_all([
            PaymentScheduleEntry(
                application_id=application_id,
                payment_number=entry.payment_number,
                due_date=entry.due_date,
                payment_amount=entry.payment_amount,
                principal_amount=entry.principal_amount,
                interest_amount=entry.interest_amount,
                remaining_balance=entry.remaining_balance,
                status=entry.status,
            )
            for entry in entries
        ])
        await self.session.flush()

    async def list_schedule(self, application_id: int) -> Sequence[PaymentScheduleEntry]:
        result = await self.session.execute(
            select(PaymentScheduleEntry)
            .where(PaymentScheduleEntry.application_id == application_id)
            .order_by(PaymentScheduleEntry.payment_number)
        )
        return result.scalars().all()

    # ── Approvals ──

    async def add_approval_records(self, application_id: int, steps: Iterable[ApprovalStep]) -> list[ApprovalRecord]:
        records = [
            ApprovalRecord(
                application_id=application_id,
                level=step.level,
                required_role=step.role.value,
                status=ApprovalStatus.PENDING.value,
                is_required=step.is_required,
            )
            for step in steps
        ]
        self.session.add_all(records)
        await self.session.flush()
        return records

    async def list_approvals(self, application_id: int) -> Sequence[ApprovalRecord]:
        result = await self.session.execute(
            select(ApprovalRecord)
            .where(ApprovalRecord.application_id == application_id)
            .order_by(ApprovalRecord.level, ApprovalRecord.id)
        )
        return result.scalars().all()

    async def get_pending_approval(
        self, application_id: int, level: int, for_update: bool = False,
    ) -> Optional[ApprovalRecord]:
        stmt = select(ApprovalRecord).where(
            ApprovalRecord.application_id == application_id,
            ApprovalRecord.level == level,
            ApprovalRecord.status == ApprovalStatus.PENDING.value,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt.order_by(ApprovalRecord.id.desc()).limit(1))
        return result.scalar_one_or_none()

    async def count_pending_required(self, application_id: int) -> int:
        result = await self.session.execute(
            select(func.count(ApprovalRecord.id)).where(
                ApprovalRecord.application_id == application_id,
                ApprovalRecord.status == ApprovalStatus.PENDING.value,
                ApprovalRecord.is_required.is_(True),
            )
        )
        return int(result.scalar_one())

    async def cancel_pending_approvals(self, application_id: int) -> int:
        result = await self.session.execute(
            update(ApprovalRecord)
            .where(
                ApprovalRecord.application_id == application_id,
                ApprovalRecord.status == ApprovalStatus.PENDING.value,
            )
            .values(status=ApprovalStatus.CANCELLED.value)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def mark_level_escalated(self, application_id: int, level: int, reason: str) -> int:
        result = await self.session.execute(
            update(ApprovalRecord)
            .where(
                ApprovalRecord.application_id == application_id,
                ApprovalRecord.level == level,
                ApprovalRecord.status != ApprovalStatus.CANCELLED.value,
            )
            .values(status=ApprovalStatus.ESCALATED.value, comments=reason)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    async def upsert_approval(self, application_id: int, level: int, role: str) -> tuple[ApprovalRecord, bool]:
        """
        Reset the newest record at (application, level) to pending, or insert
        one. Returns (record, created).
        """
        result = await self.session.execute(
            select(ApprovalRecord)
            .where(ApprovalRecord.application_id == application_id, ApprovalRecord.level == level)
            .order_by(ApprovalRecord.id.desc())
            .limit(1)
            .with_for_update()
        )
        record = result.scalar_one_or_none()

        if record is None:
            record = ApprovalRecord(
                application_id=application_id,
                level=level,
                required_role=role,
                status=ApprovalStatus.PENDING.value,
                is_required=True,
            )
            self.session.add(record)
            await self.session.flush()
            return record, True

        record.required_role = role
        record.status = ApprovalStatus.PENDING.value
        record.is_required = True
        record.approved_by = None
        record.decided_at = None
        record.rejection_reason = None
        await self.session.flush()
        return record, False

    async def list_pending_for_role(
        self,
        role: str,
        branch_id: Optional[int],
        filters: PendingApprovalFilters,
    ) -> list[tuple[ApprovalRecord, LoanApplication]]:
        stmt = (
            select(ApprovalRecord, LoanApplication)
            .join(LoanApplication, ApprovalRecord.application_id == LoanApplication.id)
            .where(
                ApprovalRecord.status == ApprovalStatus.PENDING.value,
                ApprovalRecord.required_role == role,
            )
        )
        if branch_id is not None:
            stmt = stmt.where(LoanApplication.branch_id == branch_id)
        if filters.min_amount is not None:
            stmt = stmt.where(LoanApplication.requested_amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(LoanApplication.requested_amount <= filters.max_amount)
        if filters.submitted_after is not None:
            stmt = stmt.where(LoanApplication.submitted_at >= filters.submitted_after)

        result = await self.session.execute(
            stmt.order_by(LoanApplication.submitted_at.asc(), ApprovalRecord.id.asc())
        )
        return [(record, application) for record, application in result.all()]

    # ── Risk assessments ──

    async def add_risk_assessment(self, assessment: RiskAssessment) -> RiskAssessment:
        self.session.add(assessment)
        await self.session.flush()
        return assessment

    async def latest_risk_assessment(self, application_id: int) -> Optional[RiskAssessment]:
        result = await self.session.execute(
            select(RiskAssessment)
            .where(RiskAssessment.application_id == application_id)
            .order_by(RiskAssessment.created_at.desc(), RiskAssessment.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_risk_assessments(self, application_id: int) -> Sequence[RiskAssessment]:
        result = await self.session.execute(
            select(RiskAssessment)
            .where(RiskAssessment.application_id == application_id)
            .order_by(RiskAssessment.created_at.desc(), RiskAssessment.id.desc())
        )
        return result.scalars().all()
