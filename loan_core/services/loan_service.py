"""
Loan Application Manager

Owns the front half of the status machine:

    draft → submitted → (approval workflow takes over)

create / update / submit each run inside one UnitOfWork: the application
row, its schedule, its approval records and the audit entry commit together
or not at all. update and submit lock the application row first.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Union

import structlog
from pydantic import BaseModel, ValidationError

from loan_core.core.config import Settings, get_settings
from loan_core.core.errors import (
    ApplicationValidationError,
    KYCNotApprovedError,
    NotEditableError,
    NotFoundError,
    ProductUnavailableError,
)
from loan_core.models.loan_application import LoanApplication, LoanProduct
from loan_core.schemas.loan import (
    EDITABLE_STATUSES,
    SCHEDULE_FIELDS,
    Collateral,
    Guarantor,
    KYCStatus,
    LoanApplicationCreate,
    LoanApplicationUpdate,
    LoanApplicationView,
    LoanStatus,
    PaymentFrequency,
    PaymentScheduleEntryView,
)
from loan_core.services.approval_chain import build_approval_chain
from loan_core.services.schedule_calculator import ScheduleResult, calculate_payment_schedule, to_money
from loan_core.services.unit_of_work import UnitOfWork

logger = structlog.get_logger()

RESOURCE = "loan_application"

# Columns that must be filled before an application can enter the workflow
COMPLETENESS_FIELDS = (
    "customer_id", "product_id", "requested_amount", "term_months",
    "purpose", "employment_status", "monthly_income",
)

# Patch keys that may be sent as null; everything else must carry a value
CLEARABLE_FIELDS = frozenset({"collateral", "guarantor"})


def _parse(model: type[BaseModel], data: Union[BaseModel, dict[str, Any]]) -> BaseModel:
    """Validate a payload, re-raising pydantic errors as the core's own."""
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or None
        raise ApplicationValidationError(first["msg"], field=field, errors=e.errors(include_url=False))


def _check_product_bounds(product: LoanProduct, amount: Decimal, term_months: int) -> None:
    if amount < product.min_amount or amount > product.max_amount:
        raise ApplicationValidationError(
            f"Loan amount must be between {product.min_amount} and {product.max_amount}",
            field="requested_amount",
        )
    if term_months < product.min_term_months or term_months > product.max_term_months:
        raise ApplicationValidationError(
            f"Loan term must be between {product.min_term_months} and {product.max_term_months} months",
            field="term_months",
        )


def _processing_fee(product: LoanProduct, amount: Decimal) -> Decimal:
    return to_money(Decimal(amount) * Decimal(product.processing_fee_rate or 0) / 100)


def _chain_roles(amount) -> list[str]:
    return [step.role for step in build_approval_chain(amount)]


def _column_values(patch: dict[str, Any]) -> dict[str, Any]:
    """Flatten a validated patch into loan_applications column values."""
    values: dict[str, Any] = {}
    for key, value in patch.items():
        if key == "collateral":
            collateral = Collateral.model_validate(value) if value is not None else Collateral()
            values["collateral_type"] = collateral.type.value
            values["collateral_value"] = collateral.value
            values["collateral_description"] = collateral.description
        elif key == "guarantor":
            guarantor = Guarantor.model_validate(value) if value is not None else Guarantor()
            values["guarantor_name"] = guarantor.name
            values["guarantor_phone"] = guarantor.phone
            values["guarantor_relationship"] = guarantor.relationship
        elif key in ("employment_status", "payment_frequency"):
            values[key] = value.value if hasattr(value, "value") else value
        else:
            values[key] = value
    return values


class LoanApplicationManager:

    def __init__(self, session_factory, settings: Optional[Settings] = None):
        self._session_factory = session_factory
        self.settings = settings or get_settings()

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(self._session_factory)

    # ── Create ──

    async def create(
        self, data: Union[LoanApplicationCreate, dict[str, Any]], actor_id: int,
    ) -> LoanApplicationView:
        payload = _parse(LoanApplicationCreate, data)

        async with self._uow() as uow:
            customer = await uow.customers.get_customer(payload.customer_id)
            if customer is None:
                raise NotFoundError("Customer", payload.customer_id)
            if customer.kyc_status != KYCStatus.APPROVED.value:
                raise KYCNotApprovedError(customer.id, customer.kyc_status)

            product = await uow.loans.get_product(payload.product_id)
            if product is None or not product.is_active:
                raise ProductUnavailableError(payload.product_id)
            _check_product_bounds(product, payload.requested_amount, payload.term_months)

            interest_rate = payload.interest_rate if payload.interest_rate is not None else product.interest_rate
            frequency = payload.payment_frequency or PaymentFrequency(self.settings.default_payment_frequency)
            start_date = payload.proposed_start_date or date.today()

            schedule = calculate_payment_schedule(
                payload.requested_amount, interest_rate, payload.term_months, frequency, start_date,
            )
            fee = _processing_fee(product, payload.requested_amount)

            application = LoanApplication(
                customer_id=customer.id,
                product_id=product.id,
                requested_amount=to_money(payload.requested_amount),
                term_months=payload.term_months,
                interest_rate=interest_rate,
                payment_frequency=frequency.value,
                proposed_start_date=start_date,
                processing_fee=fee,
                total_amount=to_money(payload.requested_amount) + fee,
                periodic_payment=schedule.periodic_payment,
                purpose=payload.purpose,
                employment_status=payload.employment_status.value,
                monthly_income=payload.monthly_income,
                existing_debts=payload.existing_debts,
                collateral_type=payload.collateral.type.value,
                collateral_value=payload.collateral.value,
                collateral_description=payload.collateral.description,
                guarantor_name=payload.guarantor.name,
                guarantor_phone=payload.guarantor.phone,
                guarantor_relationship=payload.guarantor.relationship,
                status=LoanStatus.DRAFT.value,
                branch_id=payload.branch_id if payload.branch_id is not None else customer.branch_id,
                created_by=actor_id,
            )
            await uow.loans.add_application(
                application, self.settings.application_code_prefix, self.settings.application_code_width,
            )
            await uow.loans.replace_schedule(application.id, schedule.entries)

            await uow.audit.record(actor_id, "application_created", RESOURCE, application.id, {
                "application_code": application.application_code,
                "customer_id": customer.id,
                "requested_amount": application.requested_amount,
                "term_months": application.term_months,
            })
            view = LoanApplicationView.model_validate(application)

        logger.info(
            "loan_application_created",
            application_id=view.id,
            application_code=view.application_code,
            amount=str(view.requested_amount),
        )
        return view

    # ── Update ──

    async def update(
        self,
        application_id: int,
        patch: Union[LoanApplicationUpdate, dict[str, Any]],
        actor_id: int,
    ) -> LoanApplicationView:
        """
        Patches a draft or submitted application. Changes to the loan terms
        rebuild the schedule. A submitted application already holds its
        approval records, so an amount change that would need a different
        approval chain is rejected rather than rebuilding the chain under
        review.
        """
        fields = _parse(LoanApplicationUpdate, patch).model_dump(exclude_unset=True)
        if not fields:
            raise ApplicationValidationError("No valid fields to update")
        for key, value in fields.items():
            if value is None and key not in CLEARABLE_FIELDS:
                raise ApplicationValidationError(f"{key} cannot be cleared", field=key)

        async with self._uow() as uow:
            application = await uow.loans.get_application(application_id, for_update=True)
            if application is None:
                raise NotFoundError("Loan application", application_id)
            if LoanStatus(application.status) not in EDITABLE_STATUSES:
                raise NotEditableError(application_id, application.status, "updated")

            changed = {
                column: value
                for column, value in _column_values(fields).items()
                if getattr(application, column) != value
            }
            if (
                "requested_amount" in changed
                and LoanStatus(application.status) == LoanStatus.SUBMITTED
                and _chain_roles(application.requested_amount) != _chain_roles(changed["requested_amount"])
            ):
                raise ApplicationValidationError(
                    "Amount change would alter the approval chain of a submitted application",
                    field="requested_amount",
                )
            for column, value in changed.items():
                setattr(application, column, value)

            if changed.keys() & SCHEDULE_FIELDS:
                product = await uow.loans.get_product(application.product_id)
                if product is None:
                    raise ProductUnavailableError(application.product_id)
                if changed.keys() & {"requested_amount", "term_months"}:
                    _check_product_bounds(product, Decimal(application.requested_amount), application.term_months)

                schedule = self._schedule_for(application)
                await uow.loans.replace_schedule(application.id, schedule.entries)

                fee = _processing_fee(product, application.requested_amount)
                application.periodic_payment = schedule.periodic_payment
                application.processing_fee = fee
                application.total_amount = to_money(Decimal(application.requested_amount)) + fee

            await uow.loans.flush()
            await uow.audit.record(actor_id, "application_updated", RESOURCE, application.id, {
                "updated_fields": sorted(fields),
                "changes": {column: changed[column] for column in sorted(changed)},
            })
            view = LoanApplicationView.model_validate(application)

        logger.info(
            "loan_application_updated",
            application_id=application_id,
            changed=sorted(changed),
            schedule_recomputed=bool(changed.keys() & SCHEDULE_FIELDS),
        )
        return view

    # ── Submit ──

    async def submit(self, application_id: int, actor_id: int) -> LoanApplicationView:
        async with self._uow() as uow:
            application = await uow.loans.get_application(application_id, for_update=True)
            if application is None:
                raise NotFoundError("Loan application", application_id)
            if application.status != LoanStatus.DRAFT.value:
                raise NotEditableError(application_id, application.status, "submitted")

            for field in COMPLETENESS_FIELDS:
                if not getattr(application, field):
                    raise ApplicationValidationError(f"{field} is required before submission", field=field)

            customer = await uow.customers.get_customer(application.customer_id)
            if customer is None:
                raise NotFoundError("Customer", application.customer_id)
            if customer.kyc_status != KYCStatus.APPROVED.value:
                raise KYCNotApprovedError(customer.id, customer.kyc_status)

            application.status = LoanStatus.SUBMITTED.value
            application.submitted_at = datetime.now(timezone.utc)

            chain = build_approval_chain(application.requested_amount)
            await uow.loans.add_approval_records(application.id, chain)

            await uow.audit.record(actor_id, "application_submitted", RESOURCE, application.id, {
                "application_code": application.application_code,
                "amount": application.requested_amount,
                "approval_levels": [step.role.value for step in chain],
            })
            view = LoanApplicationView.model_validate(application)

        logger.info("loan_application_submitted", application_id=application_id, approval_levels=len(chain))
        return view

    # ── Reads ──

    async def get_application(self, application_id: int) -> LoanApplicationView:
        async with self._uow() as uow:
            application = await uow.loans.get_application(application_id)
            if application is None:
                raise NotFoundError("Loan application", application_id)
            return LoanApplicationView.model_validate(application)

    async def get_payment_schedule(self, application_id: int) -> list[PaymentScheduleEntryView]:
        async with self._uow() as uow:
            if await uow.loans.get_application(application_id) is None:
                raise NotFoundError("Loan application", application_id)
            entries = await uow.loans.list_schedule(application_id)
            return [PaymentScheduleEntryView.model_validate(entry) for entry in entries]

    def preview_schedule(
        self,
        principal,
        annual_rate,
        term_months: int,
        payment_frequency: Union[PaymentFrequency, str, None] = None,
        start_date: Optional[date] = None,
    ) -> ScheduleResult:
        """Schedule for prospective terms; nothing is persisted."""
        return calculate_payment_schedule(
            principal,
            annual_rate,
            term_months,
            payment_frequency or self.settings.default_payment_frequency,
            start_date,
        )

    def _schedule_for(self, application: LoanApplication) -> ScheduleResult:
        return calculate_payment_schedule(
            application.requested_amount,
            application.interest_rate,
            application.term_months,
            application.payment_frequency,
            application.proposed_start_date,
        )
