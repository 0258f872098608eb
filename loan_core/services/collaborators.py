"""
Collaborators the core talks to but does not own.

    CustomerLookup           → KYC status + branch of a customer
    StaffLookup              → role + branch of the acting user
    AuditSink                → state-transition trail, same transaction
    FinancialHistoryProvider → prior loan / repayment behaviour

Each contract is a Protocol; the classes below are the database-backed
defaults. The audit sink shares the caller's session so an audit row
commits or rolls back with the change it documents.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol

import structlog
from pydantic_core import to_jsonable_python
from sqlalchemy.ext.asyncio import AsyncSession

from loan_core.models.audit_log import AuditLog
from loan_core.models.customer import Customer, StaffUser
from loan_core.schemas.risk import CreditHistory, FinancialHistory, PaymentHistory

logger = structlog.get_logger()


@dataclass(frozen=True)
class CustomerSnapshot:
    id: int
    customer_code: str
    full_name: str
    kyc_status: str
    branch_id: int


@dataclass(frozen=True)
class StaffMember:
    id: int
    role: str
    branch_id: Optional[int]


class CustomerLookup(Protocol):
    async def get_customer(self, customer_id: int) -> Optional[CustomerSnapshot]: ...


class StaffLookup(Protocol):
    async def get_staff(self, user_id: int) -> Optional[StaffMember]: ...


class AuditSink(Protocol):
    async def record(
        self,
        actor_id: Optional[int],
        action: str,
        resource_type: str,
        resource_id: Any,
        details: Optional[dict[str, Any]] = None,
    ) -> None: ...


class FinancialHistoryProvider(Protocol):
    async def get_history(self, customer_id: int) -> FinancialHistory: ...


# ── Database-backed defaults ──

class CustomerDirectory:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_customer(self, customer_id: int) -> Optional[CustomerSnapshot]:
        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            return None
        return CustomerSnapshot(
            id=customer.id,
            customer_code=customer.customer_code,
            full_name=customer.full_name,
            kyc_status=customer.kyc_status,
            branch_id=customer.branch_id,
        )


class StaffDirectory:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_staff(self, user_id: int) -> Optional[StaffMember]:
        user = await self.session.get(StaffUser, user_id)
        if user is None or not user.is_active:
            return None
        return StaffMember(id=user.id, role=user.role, branch_id=user.branch_id)


class AuditTrail:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        actor_id: Optional[int],
        action: str,
        resource_type: str,
        resource_id: Any,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.session.add(AuditLog(
            user_id=actor_id,
            action=action,
            resource=resource_type,
            resource_id=str(resource_id),
            details=to_jsonable_python(details or {}),
            success=True,
        ))
        await self.session.flush()
        logger.debug("audit_recorded", action=action, resource=resource_type, resource_id=str(resource_id))


class EmptyFinancialHistory:
    """
    Default provider until repayment data is wired in: every customer looks
    like a new borrower with no prior loans.
    """

    async def get_history(self, customer_id: int) -> FinancialHistory:
        return FinancialHistory(
            credit_history=CreditHistory(),
            payment_history=PaymentHistory(),
        )
