"""
Amortization Schedule Calculator

Level-payment amortization:
    r       = annual_rate / 100 / 12
    payment = P * r(1+r)^n / ((1+r)^n - 1)

Each period:
    interest  = balance * r
    principal = payment - interest
    balance  -= principal

Money is Decimal and rounded half-up to the cent when each entry is built,
so the running balance is always the sum of what the customer will actually
see. The last entry absorbs the rounding residue: principal portions add up
to the loan principal exactly and the final balance is 0.00. When the
rounded installment would clear the loan early (long terms, small
installments) it is lowered a cent at a time, so every balance before the
last stays positive and the residue on the last entry is never negative.

Zero rate:
    The formula divides by zero, so the payment falls back to P / n with no
    interest.

Due dates start on the start date and step by the payment frequency
(7 days, 14 days, 1 month, 3 months). Month steps are always taken from the
start date so a 31st stays on the last day of short months without drifting.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from loan_core.core.errors import ApplicationValidationError
from loan_core.schemas.loan import PaymentFrequency

Number = Union[Decimal, int, float, str]

CENT = Decimal("0.01")
MAX_TERM_MONTHS = 240

FREQUENCY_STEP = {
    PaymentFrequency.WEEKLY: relativedelta(weeks=1),
    PaymentFrequency.BI_WEEKLY: relativedelta(weeks=2),
    PaymentFrequency.MONTHLY: relativedelta(months=1),
    PaymentFrequency.QUARTERLY: relativedelta(months=3),
}


@dataclass(frozen=True)
class ScheduleEntry:
    payment_number: int
    due_date: date
    payment_amount: Decimal
    principal_amount: Decimal
    interest_amount: Decimal
    remaining_balance: Decimal
    status: str = "pending"


@dataclass(frozen=True)
class ScheduleResult:
    periodic_payment: Decimal
    total_amount: Decimal
    total_interest: Decimal
    entries: tuple[ScheduleEntry, ...]


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value: Number, field: str) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ApplicationValidationError(f"{field} must be a number", field=field)


def calculate_payment_schedule(
    principal: Number,
    annual_rate: Number,
    term_months: int,
    payment_frequency: Union[PaymentFrequency, str] = PaymentFrequency.MONTHLY,
    start_date: Optional[date] = None,
) -> ScheduleResult:
    """
    Main entry point. Validates the terms and builds the full schedule.
    """
    principal = to_money(_to_decimal(principal, "principal"))
    rate = _to_decimal(annual_rate, "interest_rate")

    if principal <= 0:
        raise ApplicationValidationError("Requested amount must be greater than zero", field="principal")
    if rate < 0:
        raise ApplicationValidationError("Interest rate cannot be negative", field="interest_rate")
    if not isinstance(term_months, int) or not 1 <= term_months <= MAX_TERM_MONTHS:
        raise ApplicationValidationError(
            f"Term months must be between 1 and {MAX_TERM_MONTHS}", field="term_months",
        )
    try:
        frequency = PaymentFrequency(payment_frequency)
    except ValueError:
        raise ApplicationValidationError(
            f"Unknown payment frequency '{payment_frequency}'", field="payment_frequency",
        )
    if principal < CENT * term_months:
        raise ApplicationValidationError(
            "Requested amount is too small to repay in cents over the term", field="principal",
        )

    start = start_date or date.today()
    periodic_rate = rate / 100 / 12

    # Rounding the installment up can retire a small loan before its last
    # period; step it down a cent until every balance before the last is positive.
    installment = to_money(_level_payment(principal, periodic_rate, term_months))
    entries = _amortize(principal, periodic_rate, installment, term_months, start, frequency)
    while entries is None:
        installment -= CENT
        entries = _amortize(principal, periodic_rate, installment, term_months, start, frequency)

    return ScheduleResult(
        periodic_payment=installment,
        total_amount=sum((e.payment_amount for e in entries), Decimal("0.00")),
        total_interest=sum((e.interest_amount for e in entries), Decimal("0.00")),
        entries=tuple(entries),
    )


def _amortize(
    principal: Decimal,
    periodic_rate: Decimal,
    installment: Decimal,
    periods: int,
    start: date,
    frequency: PaymentFrequency,
) -> Optional[list[ScheduleEntry]]:
    """
    Builds the entries for a fixed installment. Returns None when the
    installment pays the balance off before the last period.
    """
    entries: list[ScheduleEntry] = []
    balance = principal
    for number in range(1, periods + 1):
        interest = to_money(balance * periodic_rate)

        if number == periods:
            # Fold the rounding residue into the last installment
            principal_part = balance
            payment = principal_part + interest
            balance = Decimal("0.00")
        else:
            principal_part = installment - interest
            payment = installment
            balance = balance - principal_part
            if balance <= 0:
                return None

        entries.append(ScheduleEntry(
            payment_number=number,
            due_date=_due_date(start, frequency, number - 1),
            payment_amount=payment,
            principal_amount=principal_part,
            interest_amount=interest,
            remaining_balance=balance,
        ))
    return entries


def _level_payment(principal: Decimal, periodic_rate: Decimal, periods: int) -> Decimal:
    if periodic_rate == 0:
        return principal / periods

    growth = (1 + periodic_rate) ** periods
    return principal * (periodic_rate * growth) / (growth - 1)


def _due_date(start: date, frequency: PaymentFrequency, steps: int) -> date:
    return start + FREQUENCY_STEP[frequency] * steps
