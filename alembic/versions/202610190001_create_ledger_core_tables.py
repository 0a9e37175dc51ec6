"""create ledger core tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=128), nullable=False),
        sa.Column("entity_id", sa.String(length=128), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("correlation_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_id"), "audit_logs", ["id"], unique=False)

    op.create_table(
        "ledger_account",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=True),
        sa.Column("normal_balance", sa.String(length=32), nullable=False),
        sa.Column("parent_id", sa.Uuid(), nullable=True),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("opening_balance", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("current_balance", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("allow_direct_posting", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_control_account", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["parent_id"], ["ledger_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_ledger_account_code"),
        sa.CheckConstraint("parent_id IS NULL OR parent_id <> id", name="ck_ledger_account_not_own_parent"),
    )
    op.create_index("ix_ledger_account_parent", "ledger_account", ["parent_id"])

    op.create_table(
        "ledger_journal_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("entry_number", sa.String(length=32), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("posting_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reference_number", sa.String(length=128), nullable=True),
        sa.Column("total_debit", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("total_credit", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="DRAFT"),
        sa.Column("source_document_type", sa.String(length=64), nullable=True),
        sa.Column("source_document_id", sa.String(length=128), nullable=True),
        sa.Column("is_reversal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reverses_entry_id", sa.Uuid(), nullable=True),
        sa.Column("reversed_by_entry_id", sa.Uuid(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("posted_by", sa.String(length=255), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["reverses_entry_id"], ["ledger_journal_entry.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["reversed_by_entry_id"], ["ledger_journal_entry.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("entry_number", name="uq_ledger_entry_number"),
    )
    op.create_index("ix_ledger_entry_posting_date", "ledger_journal_entry", ["posting_date", "status"])
    op.create_index("ix_ledger_entry_source", "ledger_journal_entry", ["source_document_type", "source_document_id"])

    op.create_table(
        "ledger_journal_line",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("journal_entry_id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("debit_amount", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("credit_amount", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("cost_center", sa.String(length=64), nullable=True),
        sa.Column("project_code", sa.String(length=64), nullable=True),
        sa.Column("cash_flow_category", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["journal_entry_id"], ["ledger_journal_entry.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["ledger_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("journal_entry_id", "line_number", name="uq_ledger_line_number"),
        sa.CheckConstraint("debit_amount >= 0", name="ck_ledger_line_debit_nonnegative"),
        sa.CheckConstraint("credit_amount >= 0", name="ck_ledger_line_credit_nonnegative"),
        sa.CheckConstraint(
            "((debit_amount > 0 AND credit_amount = 0) OR (credit_amount > 0 AND debit_amount = 0))",
            name="ck_ledger_line_single_sided",
        ),
    )
    op.create_index("ix_ledger_line_account", "ledger_journal_line", ["account_id"])

    op.create_table(
        "ledger_financial_period",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("financial_year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="ACTIVE"),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=True),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("financial_year", "name", name="uq_ledger_period_name"),
        sa.CheckConstraint("start_date <= end_date", name="ck_ledger_period_date_order"),
    )
    op.create_index("ix_ledger_period_dates", "ledger_financial_period", ["start_date", "end_date"])

    op.create_table(
        "ledger_sequence",
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("next_value", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("name"),
    )

    op.create_table(
        "budget",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("financial_year", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="DRAFT"),
        sa.Column("created_by", sa.String(length=255), nullable=False),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", "financial_year", name="uq_budget_name_year"),
        sa.CheckConstraint("start_date <= end_date", name="ck_budget_date_order"),
    )

    op.create_table(
        "budget_line",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("budget_id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("budgeted_amount", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("actual_amount_cached", sa.Numeric(18, 4), nullable=True),
        sa.Column("actual_refreshed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["budget_id"], ["budget.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["account_id"], ["ledger_account.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("budget_id", "line_number", name="uq_budget_line_number"),
    )
    op.create_index("ix_budget_line_account", "budget_line", ["account_id"])


def downgrade() -> None:
    op.drop_index("ix_budget_line_account", table_name="budget_line")
    op.drop_table("budget_line")
    op.drop_table("budget")
    op.drop_table("ledger_sequence")
    op.drop_index("ix_ledger_period_dates", table_name="ledger_financial_period")
    op.drop_table("ledger_financial_period")
    op.drop_index("ix_ledger_line_account", table_name="ledger_journal_line")
    op.drop_table("ledger_journal_line")
    op.drop_index("ix_ledger_entry_source", table_name="ledger_journal_entry")
    op.drop_index("ix_ledger_entry_posting_date", table_name="ledger_journal_entry")
    op.drop_table("ledger_journal_entry")
    op.drop_index("ix_ledger_account_parent", table_name="ledger_account")
    op.drop_table("ledger_account")
    op.drop_index(op.f("ix_audit_logs_id"), table_name="audit_logs")
    op.drop_table("audit_logs")
