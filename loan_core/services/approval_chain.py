"""
Approval Chain Builder

Maps a requested amount to the ordered approval levels it needs.
Upper bounds are inclusive:

    amount <= 100,000      → loan_officer
    amount <= 500,000      → + branch_manager
    amount <= 5,000,000    → + finance_manager
    amount >  5,000,000    → + ceo

The same table drives authority validation and escalation.
"""
from __future__ import annotations

from decimal import Decimal
from types import MappingProxyType
from typing import Optional, Union

from loan_core.schemas.approval import ApprovalStep, Role

Amount = Union[Decimal, int, float]

ROLE_HIERARCHY = MappingProxyType({
    Role.LOAN_OFFICER: 1,
    Role.BRANCH_MANAGER: 2,
    Role.FINANCE_MANAGER: 3,
    Role.CEO: 4,
    Role.ADMIN: 5,
    Role.SUPER_ADMIN: 6,
})

# (inclusive upper bound, roles by level); None = no upper bound
CHAIN_TABLE: tuple[tuple[Optional[Decimal], tuple[Role, ...]], ...] = (
    (Decimal("100000"), (Role.LOAN_OFFICER,)),
    (Decimal("500000"), (Role.LOAN_OFFICER, Role.BRANCH_MANAGER)),
    (Decimal("5000000"), (Role.LOAN_OFFICER, Role.BRANCH_MANAGER, Role.FINANCE_MANAGER)),
    (None, (Role.LOAN_OFFICER, Role.BRANCH_MANAGER, Role.FINANCE_MANAGER, Role.CEO)),
)

STEP_DESCRIPTIONS = MappingProxyType({
    1: "Initial review and documentation check",
    2: "Branch-level approval",
    3: "Financial review and final approval",
    4: "Executive approval for high-value loans",
})


def role_rank(role: Union[Role, str, None]) -> int:
    """Position in the hierarchy; 0 for anything unknown."""
    try:
        return ROLE_HIERARCHY[Role(role)]
    except ValueError:
        return 0


def _roles_for_amount(amount: Amount) -> tuple[Role, ...]:
    value = Decimal(str(amount))
    for upper, roles in CHAIN_TABLE:
        if upper is None or value <= upper:
            return roles
    return CHAIN_TABLE[-1][1]


def build_approval_chain(amount: Amount) -> list[ApprovalStep]:
    return [
        ApprovalStep(level=level, role=role, is_required=True)
        for level, role in enumerate(_roles_for_amount(amount), start=1)
    ]


def required_role_for_level(level: int, amount: Amount) -> Optional[Role]:
    roles = _roles_for_amount(amount)
    if 1 <= level <= len(roles):
        return roles[level - 1]
    return None
