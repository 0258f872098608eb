"""
One session, one transaction.

    async with UnitOfWork(session_factory) as uow:
        app = await uow.loans.get_application(42, for_update=True)
        ...
        await uow.audit.record(...)

Clean exit commits; any exception rolls back and propagates unchanged.
"""
from __future__ import annotations

from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from loan_core.services.collaborators import (
    AuditSink,
    AuditTrail,
    CustomerDirectory,
    CustomerLookup,
    StaffDirectory,
    StaffLookup,
)
from loan_core.services.repository import LoanRepository

logger = structlog.get_logger()


class UnitOfWork:

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        customers: Callable[[AsyncSession], CustomerLookup] = CustomerDirectory,
        staff: Callable[[AsyncSession], StaffLookup] = StaffDirectory,
        audit: Callable[[AsyncSession], AuditSink] = AuditTrail,
    ):
        self._session_factory = session_factory
        self._customers_factory = customers
        self._staff_factory = staff
        self._audit_factory = audit
        self.session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        await self.session.begin()
        self.loans = LoanRepository(self.session)
        self.customers = self._customers_factory(self.session)
        self.staff = self._staff_factory(self.session)
        self.audit = self._audit_factory(self.session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                await self.session.commit()
            else:
                logger.debug("unit_of_work_rollback", error=str(exc))
                await self.session.rollback()
        finally:
            await self.session.close()
