"""
Loan application manager: create / update / submit against an in-memory
database.
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select, update

from conftest import (
    APPROVED_CUSTOMER, BRANCH, INACTIVE_PRODUCT, PENDING_KYC_CUSTOMER, STAFF, application_payload,
)
from loan_core.core.errors import (
    ApplicationValidationError,
    KYCNotApprovedError,
    NotEditableError,
    NotFoundError,
    ProductUnavailableError,
)
from loan_core.models.approval import ApprovalRecord
from loan_core.models.audit_log import AuditLog
from loan_core.models.customer import Customer
from loan_core.models.loan_application import LoanApplication
from loan_core.schemas.loan import LoanApplicationUpdate, LoanStatus
from loan_core.services.loan_service import LoanApplicationManager
from loan_core.services.schedule_calculator import calculate_payment_schedule

OFFICER = STAFF["loan_officer"]


async def _audit_actions(session_factory, resource_id) -> list[str]:
    async with session_factory() as session:
        result = await session.execute(
            select(AuditLog.action)
            .where(AuditLog.resource_id == str(resource_id))
            .order_by(AuditLog.id)
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
class TestCreate:
    async def test_creates_draft_with_computed_terms(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)

        assert app.status == LoanStatus.DRAFT
        assert app.application_code == "LA00000001"
        assert app.interest_rate == Decimal("12.00")
        assert app.processing_fee == Decimal("1000.00")
        assert app.total_amount == Decimal("51000.00")
        assert app.branch_id == BRANCH
        assert app.created_by == OFFICER

        expected = calculate_payment_schedule(50_000, 12, 12, "monthly", date(2026, 1, 31))
        assert app.periodic_payment == expected.periodic_payment

    async def test_codes_are_sequential(self, loans):
        first = await loans.create(application_payload(), actor_id=OFFICER)
        second = await loans.create(application_payload(), actor_id=OFFICER)
        assert (first.application_code, second.application_code) == ("LA00000001", "LA00000002")

    async def test_persists_schedule(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        schedule = await loans.get_payment_schedule(app.id)

        assert [e.payment_number for e in schedule] == list(range(1, 13))
        assert schedule[0].due_date == date(2026, 1, 31)
        assert schedule[-1].remaining_balance == Decimal("0.00")
        assert sum(e.principal_amount for e in schedule) == Decimal("50000.00")

    async def test_writes_audit_entry(self, loans, session_factory):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        assert await _audit_actions(session_factory, app.id) == ["application_created"]

    async def test_explicit_rate_and_frequency(self, loans):
        app = await loans.create(
            application_payload(interest_rate=Decimal("0"), payment_frequency="weekly"), actor_id=OFFICER,
        )
        assert app.periodic_payment == (Decimal("50000") / 12).quantize(Decimal("0.01"))
        schedule = await loans.get_payment_schedule(app.id)
        assert schedule[1].due_date == date(2026, 2, 7)

    async def test_collateral_and_guarantor_stored(self, loans):
        app = await loans.create(application_payload(
            collateral={"type": "vehicle", "value": "80000", "description": "Pickup truck"},
            guarantor={"name": "Jane Doe", "phone": "+254700000000", "relationship": "sister"},
        ), actor_id=OFFICER)
        assert app.collateral_type.value == "vehicle"
        assert app.collateral_value == Decimal("80000.00")
        assert app.guarantor_relationship == "sister"

    async def test_kyc_must_be_approved(self, loans):
        with pytest.raises(KYCNotApprovedError) as exc:
            await loans.create(application_payload(customer_id=PENDING_KYC_CUSTOMER), actor_id=OFFICER)
        assert exc.value.kyc_status == "pending"

    async def test_unknown_customer(self, loans):
        with pytest.raises(NotFoundError):
            await loans.create(application_payload(customer_id=999), actor_id=OFFICER)

    async def test_inactive_product(self, loans):
        with pytest.raises(ProductUnavailableError):
            await loans.create(application_payload(product_id=INACTIVE_PRODUCT), actor_id=OFFICER)

    async def test_unknown_product_is_a_validation_error(self, loans):
        with pytest.raises(ApplicationValidationError):
            await loans.create(application_payload(product_id=999), actor_id=OFFICER)

    async def test_amount_outside_product_bounds(self, loans):
        with pytest.raises(ApplicationValidationError) as exc:
            await loans.create(application_payload(requested_amount=Decimal("500")), actor_id=OFFICER)
        assert exc.value.field == "requested_amount"

    async def test_bad_shape(self, loans):
        with pytest.raises(ApplicationValidationError) as exc:
            await loans.create(application_payload(requested_amount=Decimal("-5")), actor_id=OFFICER)
        assert exc.value.field == "requested_amount"

    async def test_term_over_240(self, loans):
        with pytest.raises(ApplicationValidationError):
            await loans.create(application_payload(term_months=241), actor_id=OFFICER)

    async def test_collateral_value_required(self, loans):
        with pytest.raises(ApplicationValidationError):
            await loans.create(application_payload(collateral={"type": "property", "value": 0}), actor_id=OFFICER)

    async def test_failed_create_leaves_nothing(self, loans, session_factory):
        with pytest.raises(KYCNotApprovedError):
            await loans.create(application_payload(customer_id=PENDING_KYC_CUSTOMER), actor_id=OFFICER)
        async with session_factory() as session:
            assert (await session.execute(select(LoanApplication))).first() is None
            assert (await session.execute(select(AuditLog))).first() is None


@pytest.mark.asyncio
class TestUpdate:
    async def test_term_change_replaces_schedule(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        updated = await loans.update(app.id, {"term_months": 24}, actor_id=OFFICER)

        schedule = await loans.get_payment_schedule(app.id)
        assert len(schedule) == 24
        assert updated.periodic_payment < app.periodic_payment
        assert schedule[-1].remaining_balance == Decimal("0.00")

    async def test_amount_change_refreshes_fee_and_total(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        updated = await loans.update(app.id, {"requested_amount": Decimal("80000")}, actor_id=OFFICER)

        assert updated.processing_fee == Decimal("1600.00")
        assert updated.total_amount == Decimal("81600.00")
        schedule = await loans.get_payment_schedule(app.id)
        assert sum(e.principal_amount for e in schedule) == Decimal("80000.00")

    async def test_start_date_change_moves_due_dates(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        await loans.update(app.id, {"proposed_start_date": date(2026, 3, 1)}, actor_id=OFFICER)
        schedule = await loans.get_payment_schedule(app.id)
        assert schedule[0].due_date == date(2026, 3, 1)

    async def test_non_schedule_change_keeps_terms(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        updated = await loans.update(app.id, LoanApplicationUpdate(purpose="Equipment purchase"), actor_id=OFFICER)

        assert updated.purpose == "Equipment purchase"
        assert updated.periodic_payment == app.periodic_payment
        assert len(await loans.get_payment_schedule(app.id)) == 12

    async def test_audit_lists_fields(self, loans, session_factory):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        await loans.update(app.id, {"purpose": "Equipment purchase"}, actor_id=OFFICER)

        async with session_factory() as session:
            entry = (await session.execute(
                select(AuditLog).where(AuditLog.action == "application_updated")
            )).scalar_one()
        assert entry.details["updated_fields"] == ["purpose"]

    async def test_allowed_while_submitted(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        await loans.submit(app.id, actor_id=OFFICER)
        updated = await loans.update(app.id, {"purpose": "Restocking"}, actor_id=OFFICER)
        assert updated.status == LoanStatus.SUBMITTED

    async def test_submitted_amount_cannot_change_approval_tier(self, loans, session_factory):
        app = await loans.create(application_payload(requested_amount=Decimal("80000")), actor_id=OFFICER)
        await loans.submit(app.id, actor_id=OFFICER)

        with pytest.raises(ApplicationValidationError) as exc:
            await loans.update(app.id, {"requested_amount": Decimal("400000")}, actor_id=OFFICER)
        assert exc.value.field == "requested_amount"

        unchanged = await loans.get_application(app.id)
        assert unchanged.requested_amount == Decimal("80000.00")
        async with session_factory() as session:
            levels = (await session.execute(
                select(ApprovalRecord.level).where(ApprovalRecord.application_id == app.id)
            )).scalars().all()
        assert list(levels) == [1]

    async def test_submitted_amount_may_change_within_tier(self, loans):
        app = await loans.create(application_payload(requested_amount=Decimal("80000")), actor_id=OFFICER)
        await loans.submit(app.id, actor_id=OFFICER)

        updated = await loans.update(app.id, {"requested_amount": Decimal("95000")}, actor_id=OFFICER)
        assert updated.requested_amount == Decimal("95000.00")
        assert updated.status == LoanStatus.SUBMITTED

    async def test_draft_amount_may_cross_tier(self, loans):
        app = await loans.create(application_payload(requested_amount=Decimal("80000")), actor_id=OFFICER)
        updated = await loans.update(app.id, {"requested_amount": Decimal("400000")}, actor_id=OFFICER)
        assert updated.requested_amount == Decimal("400000.00")

    async def test_not_editable_after_decision(self, loans, session_factory):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        async with session_factory() as session:
            await session.execute(
                update(LoanApplication).where(LoanApplication.id == app.id).values(status="approved")
            )
            await session.commit()

        with pytest.raises(NotEditableError):
            await loans.update(app.id, {"purpose": "Too late"}, actor_id=OFFICER)

    async def test_empty_patch(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        with pytest.raises(ApplicationValidationError):
            await loans.update(app.id, {}, actor_id=OFFICER)

    async def test_cannot_clear_required_field(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        with pytest.raises(ApplicationValidationError) as exc:
            await loans.update(app.id, {"requested_amount": None}, actor_id=OFFICER)
        assert exc.value.field == "requested_amount"

    async def test_revalidates_product_bounds(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        with pytest.raises(ApplicationValidationError):
            await loans.update(app.id, {"requested_amount": Decimal("30000000")}, actor_id=OFFICER)

        unchanged = await loans.get_application(app.id)
        assert unchanged.requested_amount == Decimal("50000.00")

    async def test_unknown_application(self, loans):
        with pytest.raises(NotFoundError):
            await loans.update(999, {"purpose": "x"}, actor_id=OFFICER)


@pytest.mark.asyncio
class TestSubmit:
    async def test_moves_to_submitted_and_builds_chain(self, loans, session_factory):
        app = await loans.create(application_payload(requested_amount=Decimal("200000")), actor_id=OFFICER)
        submitted = await loans.submit(app.id, actor_id=OFFICER)

        assert submitted.status == LoanStatus.SUBMITTED
        assert submitted.submitted_at is not None

        async with session_factory() as session:
            records = (await session.execute(
                select(ApprovalRecord).where(ApprovalRecord.application_id == app.id).order_by(ApprovalRecord.level)
            )).scalars().all()
        assert [(r.level, r.required_role, r.status) for r in records] == [
            (1, "loan_officer", "pending"),
            (2, "branch_manager", "pending"),
        ]
        assert await _audit_actions(session_factory, app.id) == ["application_created", "application_submitted"]

    async def test_only_from_draft(self, loans):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        await loans.submit(app.id, actor_id=OFFICER)
        with pytest.raises(NotEditableError):
            await loans.submit(app.id, actor_id=OFFICER)

    async def test_rechecks_kyc(self, loans, session_factory):
        app = await loans.create(application_payload(), actor_id=OFFICER)
        async with session_factory() as session:
            await session.execute(
                update(Customer).where(Customer.id == APPROVED_CUSTOMER).values(kyc_status="rejected")
            )
            await session.commit()

        with pytest.raises(KYCNotApprovedError):
            await loans.submit(app.id, actor_id=OFFICER)
        assert (await loans.get_application(app.id)).status == LoanStatus.DRAFT

    async def test_unknown_application(self, loans):
        with pytest.raises(NotFoundError):
            await loans.submit(999, actor_id=OFFICER)


class TestPreview:
    def test_uses_configured_default_frequency(self, settings):
        manager = LoanApplicationManager(session_factory=None, settings=settings)
        result = manager.preview_schedule(12_000, 0, 12, start_date=date(2026, 1, 31))
        assert result.entries[1].due_date == date(2026, 2, 28)
        assert result.periodic_payment == Decimal("1000.00")
