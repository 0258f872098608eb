"""
001: Initial schema: customers, staff, products, applications, schedules,
approvals, risk assessments, audit log

Revision ID: 001
Create Date: 2026-10-16
"""
from alembic import op
import sqlalchemy as sa

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("customer_code", sa.String(20), nullable=False, unique=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("kyc_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("branch_id", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_customers_branch_id", "customers", ["branch_id"])

    op.create_table(
        "staff_users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("full_name", sa.String(100), nullable=False),
        sa.Column("role", sa.String(30), nullable=False),
        sa.Column("branch_id", sa.Integer, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_staff_users_branch_id", "staff_users", ["branch_id"])

    op.create_table(
        "loan_products",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("code", sa.String(20), nullable=False, unique=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("min_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("min_term_months", sa.Integer, nullable=False),
        sa.Column("max_term_months", sa.Integer, nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("processing_fee_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "loan_applications",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("application_code", sa.String(20), nullable=True, unique=True),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("product_id", sa.Integer, sa.ForeignKey("loan_products.id"), nullable=False),

        sa.Column("requested_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("term_months", sa.Integer, nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("payment_frequency", sa.String(20), nullable=False, server_default="monthly"),
        sa.Column("proposed_start_date", sa.Date, nullable=False),

        sa.Column("processing_fee", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("periodic_payment", sa.Numeric(15, 2), nullable=False),

        sa.Column("purpose", sa.Text, nullable=False),
        sa.Column("employment_status", sa.String(30), nullable=False),
        sa.Column("monthly_income", sa.Numeric(15, 2), nullable=False),
        sa.Column("existing_debts", sa.Numeric(15, 2), nullable=False, server_default="0"),

        sa.Column("collateral_type", sa.String(30), nullable=False, server_default="none"),
        sa.Column("collateral_value", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("collateral_description", sa.Text, nullable=True),
        sa.Column("guarantor_name", sa.String(100), nullable=True),
        sa.Column("guarantor_phone", sa.String(20), nullable=True),
        sa.Column("guarantor_relationship", sa.String(50), nullable=True),

        sa.Column("status", sa.String(20), nullable=False, server_default="draft"),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),

        sa.Column("branch_id", sa.Integer, nullable=False),
        sa.Column("created_by", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_loan_applications_application_code", "loan_applications", ["application_code"])
    op.create_index("ix_loan_applications_customer_id", "loan_applications", ["customer_id"])
    op.create_index("ix_loan_applications_status", "loan_applications", ["status"])
    op.create_index("ix_loan_applications_branch_id", "loan_applications", ["branch_id"])

    op.create_table(
        "loan_payment_schedules",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "application_id", sa.Integer,
            sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("payment_number", sa.Integer, nullable=False),
        sa.Column("due_date", sa.Date, nullable=False),
        sa.Column("payment_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("principal_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("interest_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("remaining_balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("application_id", "payment_number", name="uq_schedule_application_payment"),
    )
    op.create_index("ix_loan_payment_schedules_application_id", "loan_payment_schedules", ["application_id"])

    op.create_table(
        "loan_approvals",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "application_id", sa.Integer,
            sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("level", sa.Integer, nullable=False),
        sa.Column("required_role", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("approved_by", sa.Integer, nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("comments", sa.Text, nullable=True),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column("is_required", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_loan_approvals_application_id", "loan_approvals", ["application_id"])
    op.create_index("ix_loan_approvals_required_role", "loan_approvals", ["required_role"])
    op.create_index("ix_loan_approvals_status", "loan_approvals", ["status"])

    op.create_table(
        "loan_risk_assessments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column(
            "application_id", sa.Integer,
            sa.ForeignKey("loan_applications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("overall_score", sa.Integer, nullable=False),
        sa.Column("risk_level", sa.String(20), nullable=False),
        sa.Column("risk_factors", sa.JSON, nullable=False),
        sa.Column("recommendations", sa.JSON, nullable=False),
        sa.Column("ai_insights", sa.JSON, nullable=True),
        sa.Column("assessed_by", sa.Integer, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_loan_risk_assessments_application_id", "loan_risk_assessments", ["application_id"])
    op.create_index("ix_loan_risk_assessments_customer_id", "loan_risk_assessments", ["customer_id"])
    op.create_index("ix_loan_risk_assessments_risk_level", "loan_risk_assessments", ["risk_level"])
    op.create_index("ix_loan_risk_assessments_created_at", "loan_risk_assessments", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("user_id", sa.Integer, nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("resource", sa.String(50), nullable=False),
        sa.Column("resource_id", sa.String(50), nullable=False),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("success", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_resource_id", "audit_logs", ["resource_id"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("loan_risk_assessments")
    op.drop_table("loan_approvals")
    op.drop_table("loan_payment_schedules")
    op.drop_table("loan_applications")
    op.drop_table("loan_products")
    op.drop_table("staff_users")
    op.drop_table("customers")
