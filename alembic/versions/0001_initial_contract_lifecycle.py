"""initial contract lifecycle tables

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _ts(name: str, nullable: bool = False):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=sa.text("now()"),
        nullable=nullable,
    )


def upgrade():
    op.create_table(
        "employers",
        _id(),
        sa.Column("company_name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("wallet_address", sa.String(length=100), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "employees",
        _id(),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("wallet_address", sa.String(length=100), nullable=True),
        _ts("created_at"),
    )

    op.create_table(
        "mediators",
        _id(),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("wallet_address", sa.String(length=100), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        _ts("created_at"),
    )

    op.create_table(
        "job_postings",
        _id(),
        sa.Column(
            "employer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("positions_available", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("positions_available >= 1", name="ck_job_positions_positive"),
    )
    op.create_index("ix_job_postings_employer_status", "job_postings", ["employer_id", "status"])

    op.create_table(
        "job_applications",
        _id(),
        sa.Column(
            "job_posting_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("job_postings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "employee_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employees.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("application_status", sa.String(length=20), nullable=False, server_default="applied"),
        sa.Column("contract_snapshot", postgresql.JSONB(), nullable=True),
        _ts("applied_at"),
        _ts("updated_at"),
    )
    op.create_index(
        "ix_job_applications_posting_employee",
        "job_applications",
        ["job_posting_id", "employee_id"],
    )

    op.create_table(
        "deployed_contracts",
        _id(),
        sa.Column("contract_address", sa.String(length=42), nullable=False, unique=True),
        sa.Column(
            "job_posting_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("job_postings.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "employee_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employees.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "employer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("deployment_tx_hash", sa.String(length=66), nullable=True),
        sa.Column("deployed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("verification_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("last_verification_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expected_end_date", sa.Date(), nullable=True),
        sa.Column("actual_end_date", sa.Date(), nullable=True),
        sa.Column("payment_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("payment_currency", sa.String(length=10), nullable=False, server_default="USD"),
        sa.Column("payment_frequency", sa.String(length=50), nullable=True),
        sa.Column("total_paid", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("next_payment_date", sa.Date(), nullable=True),
        sa.Column("selected_oracles", sa.Text(), nullable=True),
        sa.Column("oracle_addresses", sa.Text(), nullable=True),
        sa.Column("contract_version", sa.SmallInteger(), nullable=False, server_default="1"),
        sa.Column(
            "mediator_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("mediators.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("contract_snapshot", postgresql.JSONB(), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_deployed_contracts_job_posting", "deployed_contracts", ["job_posting_id"])
    op.create_index(
        "ix_deployed_contracts_employer_status", "deployed_contracts", ["employer_id", "status"]
    )
    op.create_index(
        "ix_deployed_contracts_employee_status", "deployed_contracts", ["employee_id", "status"]
    )
    op.create_index("ix_deployed_contracts_mediator", "deployed_contracts", ["mediator_id"])

    op.create_table(
        "payment_transactions",
        _id(),
        sa.Column(
            "deployed_contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("deployed_contracts.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="USD"),
        sa.Column("payment_type", sa.String(length=50), nullable=True),
        sa.Column("tx_hash", sa.String(length=66), nullable=False, unique=True),
        sa.Column("block_number", sa.BigInteger(), nullable=True),
        sa.Column("from_address", sa.String(length=42), nullable=True),
        sa.Column("to_address", sa.String(length=42), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("created_at"),
    )
    op.create_index(
        "ix_payment_transactions_contract", "payment_transactions", ["deployed_contract_id"]
    )

    op.create_table(
        "dispute_history",
        _id(),
        sa.Column(
            "deployed_contract_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("deployed_contracts.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("raised_by_role", sa.String(length=20), nullable=False),
        sa.Column(
            "raised_by_employee_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employees.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "raised_by_employer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("employers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _ts("raised_at"),
        sa.Column("reason", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "mediator_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("mediators.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("mediator_assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution", sa.String(length=50), nullable=True),
        sa.Column("resolution_notes", sa.Text(), nullable=True),
        sa.Column("resolution_tx_hash", sa.String(length=66), nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_dispute_history_contract", "dispute_history", ["deployed_contract_id"])

    op.create_table(
        "audit_logs",
        _id(),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("deployed_contract_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("actor_wallet", sa.String(length=100), nullable=True),
        sa.Column("request_id", sa.String(length=128), nullable=True),
        sa.Column(
            "details_json",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _ts("created_at"),
    )
    op.create_index("ix_audit_logs_contract", "audit_logs", ["deployed_contract_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])


def downgrade():
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_contract", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_dispute_history_contract", table_name="dispute_history")
    op.drop_table("dispute_history")

    op.drop_index("ix_payment_transactions_contract", table_name="payment_transactions")
    op.drop_table("payment_transactions")

    op.drop_index("ix_deployed_contracts_mediator", table_name="deployed_contracts")
    op.drop_index("ix_deployed_contracts_employee_status", table_name="deployed_contracts")
    op.drop_index("ix_deployed_contracts_employer_status", table_name="deployed_contracts")
    op.drop_index("ix_deployed_contracts_job_posting", table_name="deployed_contracts")
    op.drop_table("deployed_contracts")

    op.drop_index("ix_job_applications_posting_employee", table_name="job_applications")
    op.drop_table("job_applications")

    op.drop_index("ix_job_postings_employer_status", table_name="job_postings")
    op.drop_table("job_postings")

    op.drop_table("mediators")
    op.drop_table("employees")
    op.drop_table("employers")
