"""
Business-rule exceptions raised by the loan origination core.

Every class carries a machine-readable ``code`` so the routing layer can map
it without parsing messages. None of these are retryable: they describe a
request that will fail the same way until the data changes. Database and
driver errors are never wrapped and reach the caller unchanged.

    LoanCoreError
    +-- ApplicationValidationError
    |   +-- ProductUnavailableError
    +-- NotFoundError
    +-- KYCNotApprovedError
    +-- NotEditableError
    +-- NotReviewableError
    +-- NoPendingApprovalError
    +-- InsufficientAuthorityError
    +-- CannotEscalateError
    +-- ImmutableRecordError
"""
from __future__ import annotations

from typing import Any, Optional


class LoanCoreError(Exception):
    code: str = "LOAN_CORE_ERROR"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, **self.details}


class ApplicationValidationError(LoanCoreError):
    """Bad input shape or out-of-bounds value."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, **details: Any):
        super().__init__(message, field=field, **details)
        self.field = field


class ProductUnavailableError(ApplicationValidationError):
    code = "PRODUCT_UNAVAILABLE"

    def __init__(self, product_id: int):
        super().__init__("Invalid or inactive loan product", field="product_id", product_id=product_id)
        self.product_id = product_id


class NotFoundError(LoanCoreError):
    code = "NOT_FOUND"

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} {resource_id} not found", resource=resource, resource_id=resource_id)
        self.resource = resource
        self.resource_id = resource_id


class KYCNotApprovedError(LoanCoreError):
    code = "KYC_NOT_APPROVED"

    def __init__(self, customer_id: int, kyc_status: Optional[str]):
        super().__init__(
            "Customer KYC must be approved before a loan application",
            customer_id=customer_id,
            kyc_status=kyc_status,
        )
        self.customer_id = customer_id
        self.kyc_status = kyc_status


class NotEditableError(LoanCoreError):
    code = "NOT_EDITABLE"

    def __init__(self, application_id: int, status: str, operation: str):
        super().__init__(
            f"Application cannot be {operation} in status '{status}'",
            application_id=application_id,
            status=status,
            operation=operation,
        )
        self.application_id = application_id
        self.status = status


class NotReviewableError(LoanCoreError):
    code = "NOT_REVIEWABLE"

    def __init__(self, application_id: int, status: str):
        super().__init__(
            f"Application is not in a reviewable status ('{status}')",
            application_id=application_id,
            status=status,
        )
        self.application_id = application_id
        self.status = status


class NoPendingApprovalError(LoanCoreError):
    code = "NO_PENDING_APPROVAL"

    def __init__(self, application_id: int, level: int):
        super().__init__(
            f"No pending approval found for level {level}",
            application_id=application_id,
            level=level,
        )
        self.application_id = application_id
        self.level = level


class InsufficientAuthorityError(LoanCoreError):
    code = "INSUFFICIENT_AUTHORITY"

    def __init__(self, actor_role: str, required_role: str, reason: str):
        super().__init__(reason, actor_role=actor_role, required_role=required_role)
        self.actor_role = actor_role
        self.required_role = required_role


class CannotEscalateError(LoanCoreError):
    code = "CANNOT_ESCALATE"

    def __init__(self, application_id: int, current_level: int):
        super().__init__(
            "Cannot escalate beyond highest approval level",
            application_id=application_id,
            current_level=current_level,
        )
        self.application_id = application_id
        self.current_level = current_level


class ImmutableRecordError(LoanCoreError):
    code = "IMMUTABLE_RECORD"

    def __init__(self, record_type: str, record_id: Any):
        super().__init__(f"{record_type} {record_id} is immutable", record_type=record_type, record_id=record_id)
