"""
Shared fixtures: a fresh in-memory SQLite database per test, seeded with
customers, staff for every role and one wide-range loan product.
"""
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from loan_core.core.config import Settings
from loan_core.models.customer import Customer, StaffUser
from loan_core.models.database import create_engine, create_session_factory, init_db
from loan_core.models.loan_application import LoanProduct
from loan_core.services.approval_service import ApprovalWorkflowEngine
from loan_core.services.loan_service import LoanApplicationManager
from loan_core.services.risk_service import RiskAssessmentOrchestrator

BRANCH = 1
OTHER_BRANCH = 2

# Staff ids by role; all at BRANCH unless noted
STAFF = {
    "loan_officer": 101,
    "branch_manager": 102,
    "finance_manager": 103,
    "ceo": 104,
    "admin": 105,
    "super_admin": 106,
}
OTHER_BRANCH_OFFICER = 201
INACTIVE_OFFICER = 301

APPROVED_CUSTOMER = 1
PENDING_KYC_CUSTOMER = 2
PRODUCT = 1
INACTIVE_PRODUCT = 2


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite+aiosqlite://")


@pytest_asyncio.fixture
async def engine():
    engine = create_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = create_session_factory(engine)

    async with factory() as session:
        session.add_all([
            Customer(id=APPROVED_CUSTOMER, customer_code="CUST0001", full_name="Amina Njeri",
                     kyc_status="approved", branch_id=BRANCH),
            Customer(id=PENDING_KYC_CUSTOMER, customer_code="CUST0002", full_name="Tomas Okello",
                     kyc_status="pending", branch_id=BRANCH),
            *[
                StaffUser(id=user_id, full_name=role.replace("_", " ").title(), role=role,
                          branch_id=BRANCH)
                for role, user_id in STAFF.items()
            ],
            StaffUser(id=OTHER_BRANCH_OFFICER, full_name="Remote Officer", role="loan_officer",
                      branch_id=OTHER_BRANCH),
            StaffUser(id=INACTIVE_OFFICER, full_name="Former Officer", role="loan_officer",
                      branch_id=BRANCH, is_active=False),
            LoanProduct(id=PRODUCT, code="BIZ", name="Business Loan",
                        min_amount=Decimal("1000"), max_amount=Decimal("20000000"),
                        min_term_months=1, max_term_months=240,
                        interest_rate=Decimal("12.00"), processing_fee_rate=Decimal("2.00")),
            LoanProduct(id=INACTIVE_PRODUCT, code="OLD", name="Retired Product",
                        min_amount=Decimal("1000"), max_amount=Decimal("50000"),
                        min_term_months=1, max_term_months=12,
                        interest_rate=Decimal("10.00"), is_active=False),
        ])
        await session.commit()

    return factory


@pytest.fixture
def loans(session_factory, settings) -> LoanApplicationManager:
    return LoanApplicationManager(session_factory, settings)


@pytest.fixture
def approvals(session_factory, settings) -> ApprovalWorkflowEngine:
    return ApprovalWorkflowEngine(session_factory, settings)


@pytest.fixture
def risk(session_factory) -> RiskAssessmentOrchestrator:
    return RiskAssessmentOrchestrator(session_factory)


def application_payload(**overrides) -> dict:
    """A complete, valid create payload; override any field."""
    payload = {
        "customer_id": APPROVED_CUSTOMER,
        "product_id": PRODUCT,
        "requested_amount": Decimal("50000"),
        "term_months": 12,
        "purpose": "Working capital for retail stock",
        "employment_status": "self_employed",
        "monthly_income": Decimal("40000"),
        "existing_debts": Decimal("5000"),
        "proposed_start_date": date(2026, 1, 31),
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def submitted_application(loans):
    """Factory: create and submit an application for the given amount."""
    async def _make(amount="50000", **overrides):
        created = await loans.create(
            application_payload(requested_amount=Decimal(str(amount)), **overrides),
            actor_id=STAFF["loan_officer"],
        )
        return await loans.submit(created.id, actor_id=STAFF["loan_officer"])
    return _make
