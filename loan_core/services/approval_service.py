"""
Approval Workflow Engine

Drives an application through its approval chain:

    submitted ─approve (more pending)─→ pending_approval ─approve (last)─→ approved
        │                                      │
        └──────────────reject at any level─────┴─────────────────────────→ rejected

Authority rule (checked before anything is written):
    rank(actor) >= rank(required role)
    amount > ceo_approval_threshold  ⇒  rank(actor) >= rank(ceo)

process_approval and escalate lock the application row and the approval row
they act on, so two deciders racing on the same level serialize and the
loser sees NoPendingApproval. bulk_approve gives every item its own
transaction.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import structlog
from pydantic import ValidationError

from loan_core.core.config import Settings, get_settings
from loan_core.core.errors import (
    ApplicationValidationError,
    CannotEscalateError,
    InsufficientAuthorityError,
    LoanCoreError,
    NoPendingApprovalError,
    NotFoundError,
    NotReviewableError,
)
from loan_core.schemas.approval import (
    APPROVAL_STATUS_LABELS,
    ApprovalDecision,
    ApprovalOutcome,
    ApprovalRecordView,
    ApprovalStatus,
    BulkApprovalFailure,
    BulkApprovalItem,
    BulkApprovalResult,
    BulkApprovalSuccess,
    Decision,
    EscalationResult,
    PendingApprovalFilters,
    PendingApprovalItem,
    Role,
    WorkflowStepView,
)
from loan_core.schemas.loan import REVIEWABLE_STATUSES, LoanStatus
from loan_core.services.approval_chain import STEP_DESCRIPTIONS, required_role_for_level, role_rank
from loan_core.services.unit_of_work import UnitOfWork

logger = structlog.get_logger()

RESOURCE = "loan_approval"

NEXT_STEPS = {
    LoanStatus.PENDING_APPROVAL: [
        "Waiting for approval from next level",
        "Risk assessment may be updated",
    ],
    LoanStatus.APPROVED: [
        "Loan account will be created",
        "Disbursement process will begin",
        "Customer will be notified",
    ],
    LoanStatus.REJECTED: [
        "Customer will be notified of rejection",
        "Feedback provided for future applications",
    ],
}


def get_next_steps(status: Union[LoanStatus, str]) -> list[str]:
    """Guidance shown after a decision; empty for statuses with nothing queued."""
    return list(NEXT_STEPS.get(LoanStatus(status), []))


def _decision(value: Union[ApprovalDecision, Decision, str, dict[str, Any]]) -> ApprovalDecision:
    if isinstance(value, ApprovalDecision):
        return value
    if isinstance(value, (Decision, str)):
        value = {"decision": value}
    try:
        return ApprovalDecision.model_validate(value)
    except ValidationError as e:
        raise ApplicationValidationError(e.errors()[0]["msg"], field="decision")


class ApprovalWorkflowEngine:

    def __init__(self, session_factory, settings: Optional[Settings] = None):
        self._session_factory = session_factory
        self.settings = settings or get_settings()

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory)

    # ── Authority ──

    def validate_approval_authority(
        self, actor_role: Union[Role, str], required_role: Union[Role, str], amount: Union[Decimal, int, float],
    ) -> None:
        """Raise InsufficientAuthorityError unless the actor may decide this level."""
        actor_rank = role_rank(actor_role)
        actor_name = getattr(actor_role, "value", actor_role)
        required_name = getattr(required_role, "value", required_role)

        if actor_rank < role_rank(required_role):
            raise InsufficientAuthorityError(
                actor_name, required_name, f"Role '{actor_name}' cannot approve a level requiring '{required_name}'",
            )
        threshold = Decimal(str(self.settings.ceo_approval_threshold))
        if Decimal(str(amount)) > threshold and actor_rank < role_rank(Role.CEO):
            raise InsufficientAuthorityError(
                actor_name, Role.CEO.value, f"Loans above {threshold:,.0f} require CEO approval",
            )

    async def _resolve_actor(self, uow: UnitOfWork, actor_id: int):
        actor = await uow.staff.get_staff(actor_id)
        if actor is None:
            raise NotFoundError("User", actor_id)
        return actor

    # ── Decide ──

    async def process_approval(
        self,
        application_id: int,
        level: int,
        decision: Union[ApprovalDecision, Decision, str, dict[str, Any]],
        actor_id: int,
    ) -> ApprovalOutcome:
        decision = _decision(decision)

        async with self._uow() as uow:
            application = await uow.loans.get_application(application_id, for_update=True)
            if application is None:
                raise NotFoundError("Loan application", application_id)
            if LoanStatus(application.status) not in REVIEWABLE_STATUSES:
                raise NotReviewableError(application_id, application.status)

            record = await uow.loans.get_pending_approval(application_id, level, for_update=True)
            if record is None:
                raise NoPendingApprovalError(application_id, level)

            actor = await self._resolve_actor(uow, actor_id)
            self.validate_approval_authority(actor.role, record.required_role, application.requested_amount)

            now = datetime.now(timezone.utc)
            record.status = decision.decision.value
            record.approved_by = actor_id
            record.decided_at = now
            record.comments = decision.comments
            if decision.decision == Decision.REJECTED:
                record.rejection_reason = decision.rejection_reason
            await uow.loans.flush()

            workflow_complete = False
            if decision.decision == Decision.APPROVED:
                remaining = await uow.loans.count_pending_required(application_id)
                if remaining == 0:
                    application.status = LoanStatus.APPROVED.value
                    application.approved_at = now
                    workflow_complete = True
                    await uow.audit.record(actor_id, "loan_account_created", RESOURCE, application_id, {
                        "application_code": application.application_code,
                        "amount": application.requested_amount,
                    })
                else:
                    application.status = LoanStatus.PENDING_APPROVAL.value
            else:
                application.status = LoanStatus.REJECTED.value
                application.rejected_at = now
                application.rejection_reason = decision.rejection_reason or decision.comments
                workflow_complete = True
                await uow.loans.cancel_pending_approvals(application_id)

            await uow.audit.record(actor_id, decision.decision.value, RESOURCE, application_id, {
                "approval_id": record.id,
                "level": level,
                "decision": decision.decision.value,
                "application_status": application.status,
                "comments": decision.comments,
            })
            await uow.loans.flush()

            outcome = ApprovalOutcome(
                approval=ApprovalRecordView.model_validate(record),
                application_status=LoanStatus(application.status),
                workflow_complete=workflow_complete,
                next_steps=get_next_steps(application.status),
            )

        logger.info(
            "approval_processed",
            application_id=application_id,
            level=level,
            decision=decision.decision.value,
            application_status=outcome.application_status.value,
            actor_id=actor_id,
        )
        return outcome

    # ── Escalate ──

    async def escalate(self, application_id: int, current_level: int, reason: str, actor_id: int) -> EscalationResult:
        if not reason:
            raise ApplicationValidationError("Escalation reason is required", field="reason")

        async with self._uow() as uow:
            await self._resolve_actor(uow, actor_id)

            application = await uow.loans.get_application(application_id, for_update=True)
            if application is None:
                raise NotFoundError("Loan application", application_id)
            if LoanStatus(application.status) not in REVIEWABLE_STATUSES:
                raise NotReviewableError(application_id, application.status)

            next_level = current_level + 1
            next_role = required_role_for_level(next_level, application.requested_amount)
            if next_role is None:
                raise CannotEscalateError(application_id, current_level)

            record, created = await uow.loans.upsert_approval(application_id, next_level, next_role.value)
            await uow.loans.mark_level_escalated(application_id, current_level, reason)

            await uow.audit.record(actor_id, "escalated", RESOURCE, application_id, {
                "from_level": current_level,
                "to_level": next_level,
                "required_role": next_role.value,
                "reason": reason,
                "created": created,
            })
            result = EscalationResult(
                escalated_to_level=next_level,
                required_role=next_role,
                escalation_approval=ApprovalRecordView.model_validate(record),
                created=created,
                reason=reason,
            )

        logger.info(
            "approval_escalated",
            application_id=application_id,
            from_level=current_level,
            to_level=next_level,
            created=created,
        )
        return result

    # ── Bulk ──

    async def bulk_approve(
        self, items: Iterable[Union[BulkApprovalItem, dict[str, Any]]], actor_id: int,
    ) -> BulkApprovalResult:
        """
        Each item is decided in its own transaction. A failing item is
        recorded and skipped; items already decided stay committed.
        """
        result = BulkApprovalResult()

        for raw in items:
            result.summary.total += 1
            application_id = None
            try:
                if isinstance(raw, dict) and isinstance(raw.get("application_id"), int):
                    application_id = raw["application_id"]
                item = raw if isinstance(raw, BulkApprovalItem) else BulkApprovalItem.model_validate(raw)
                application_id = item.application_id
                outcome = await self.process_approval(
                    item.application_id,
                    item.approval_level,
                    ApprovalDecision(
                        decision=item.decision, comments=item.comments, rejection_reason=item.rejection_reason,
                    ),
                    actor_id,
                )
            except Exception as e:
                code = e.code if isinstance(e, LoanCoreError) else type(e).__name__
                logger.warning("bulk_approval_item_failed", application_id=application_id, error=str(e), code=code)
                result.failed.append(BulkApprovalFailure(application_id=application_id or 0, error=str(e), code=code))
                result.summary.failed += 1
                continue

            result.successful.append(BulkApprovalSuccess(application_id=item.application_id, result=outcome))
            if item.decision == Decision.APPROVED:
                result.summary.approved += 1
            else:
                result.summary.rejected += 1

        logger.info(
            "bulk_approval_complete",
            actor_id=actor_id,
            total=result.summary.total,
            approved=result.summary.approved,
            rejected=result.summary.rejected,
            failed=result.summary.failed,
        )
        return result

    # ── Queries ──

    async def get_pending_approvals(
        self, actor_id: int, filters: Optional[Union[PendingApprovalFilters, dict[str, Any]]] = None,
    ) -> list[PendingApprovalItem]:
        if filters is None:
            filters = PendingApprovalFilters()
        elif not isinstance(filters, PendingApprovalFilters):
            filters = PendingApprovalFilters.model_validate(filters)

        async with self._uow() as uow:
            actor = await self._resolve_actor(uow, actor_id)
            branch_id = None if actor.role in self.settings.unrestricted_roles else actor.branch_id
            rows = await uow.loans.list_pending_for_role(actor.role, branch_id, filters)

            return [
                PendingApprovalItem(
                    approval_id=record.id,
                    level=record.level,
                    required_role=record.required_role,
                    application_id=application.id,
                    application_code=application.application_code,
                    amount=application.requested_amount,
                    term_months=application.term_months,
                    submitted_at=application.submitted_at,
                    application_status=application.status,
                    customer_id=application.customer_id,
                    branch_id=application.branch_id,
                )
                for record, application in rows
            ]

    async def get_approval_workflow(self, application_id: int) -> list[WorkflowStepView]:
        async with self._uow() as uow:
            if await uow.loans.get_application(application_id) is None:
                raise NotFoundError("Loan application", application_id)
            records = await uow.loans.list_approvals(application_id)

            return [
                WorkflowStepView(
                    id=record.id,
                    level=record.level,
                    required_role=record.required_role,
                    step_description=STEP_DESCRIPTIONS.get(record.level, "Review step"),
                    status=record.status,
                    status_display=APPROVAL_STATUS_LABELS[ApprovalStatus(record.status)],
                    approved_by=record.approved_by,
                    decided_at=record.decided_at,
                    comments=record.comments,
                    rejection_reason=record.rejection_reason,
                    is_required=record.is_required,
                    can_approve=record.status == ApprovalStatus.PENDING.value,
                )
                for record in records
            ]
