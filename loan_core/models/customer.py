"""
Customer KYC records and staff users.

Both tables are owned by other parts of the platform; the core only reads
them through the customer and staff directories.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from loan_core.models.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    customer_code = Column(String(20), nullable=False, unique=True)
    full_name = Column(String(100), nullable=False)
    phone_number = Column(String(20), nullable=True)
    kyc_status = Column(String(20), nullable=False, default="pending")
    branch_id = Column(Integer, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<Customer {self.customer_code} kyc={self.kyc_status}>"


class StaffUser(Base):
    __tablename__ = "staff_users"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(100), nullable=False)
    role = Column(String(30), nullable=False)
    branch_id = Column(Integer, nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<StaffUser {self.id} role={self.role}>"
