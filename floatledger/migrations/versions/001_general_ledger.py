"""General ledger, float accounts and reconciliation issues.

Revision ID: 001
Revises:
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # -- Enums -----------------------------------------------------------------
    gl_account_type = postgresql.ENUM(
        "asset", "liability", "equity", "revenue", "expense",
        name="glaccounttype", create_type=True,
    )
    je_status = postgresql.ENUM(
        "pending", "posted", "reversed", name="journalentrystatus", create_type=True,
    )
    float_mapping_type = postgresql.ENUM(
        "main_account", "fee_account", "commission_account",
        name="floatmappingtype", create_type=True,
    )
    issue_severity = postgresql.ENUM(
        "info", "warning", "error", name="issueseverity", create_type=True,
    )
    for e in [gl_account_type, je_status, float_mapping_type, issue_severity]:
        e.create(op.get_bind(), checkfirst=True)

    # -- Tables ----------------------------------------------------------------
    op.create_table(
        "gl_accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("code", sa.String(30), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column(
            "type",
            postgresql.ENUM(name="glaccounttype", create_type=False),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_gl_accounts_type", "gl_accounts", ["type"])

    op.create_table(
        "gl_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("service_module", sa.String(50), nullable=False),
        sa.Column("transaction_type", sa.String(100), nullable=False),
        sa.Column("debit_account_id", sa.String(36), sa.ForeignKey("gl_accounts.id"), nullable=False),
        sa.Column("credit_account_id", sa.String(36), sa.ForeignKey("gl_accounts.id"), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("conditions", sa.JSON, nullable=True),
        sa.Column("position", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_gl_mappings_lookup", "gl_mappings",
        ["service_module", "transaction_type", "is_active"],
    )

    op.create_table(
        "float_accounts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("branch_id", sa.String(36), nullable=False),
        sa.Column("account_type", sa.String(50), nullable=False),
        sa.Column("provider", sa.String(100), nullable=True),
        sa.Column("account_number", sa.String(100), nullable=True),
        sa.Column("current_balance", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("min_threshold", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("max_threshold", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_float_accounts_branch", "float_accounts", ["branch_id"])

    op.create_table(
        "float_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("float_account_id", sa.String(36), sa.ForeignKey("float_accounts.id"), nullable=False),
        sa.Column("transaction_type", sa.String(50), nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=False),
        sa.Column("balance_before", sa.Numeric(18, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(18, 2), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("reference", sa.String(150), nullable=True),
        sa.Column("branch_id", sa.String(36), nullable=True),
        sa.Column("processed_by", sa.String(100), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
    )
    op.create_index(
        "ix_float_tx_account_created", "float_transactions",
        ["float_account_id", "created_at"],
    )

    op.create_table(
        "gl_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("transaction_id", sa.String(100), nullable=False),
        sa.Column("transaction_source", sa.String(50), nullable=False),
        sa.Column("transaction_type", sa.String(100), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("reference", sa.String(150), nullable=True),
        sa.Column("branch_id", sa.String(36), nullable=True),
        sa.Column(
            "status",
            postgresql.ENUM(name="journalentrystatus", create_type=False),
            nullable=False, server_default="pending",
        ),
        sa.Column("created_by", sa.String(100), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("posted_by", sa.String(100), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reversed_by", sa.String(100), nullable=True),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "reversal_of_id", sa.String(36),
            sa.ForeignKey("gl_transactions.id"), nullable=True, unique=True,
        ),
        sa.Column("metadata", sa.JSON, nullable=True),
    )
    op.create_index("ix_gl_tx_source", "gl_transactions", ["transaction_source", "transaction_id"])
    op.create_index("ix_gl_tx_date", "gl_transactions", ["date"])
    op.create_index("ix_gl_tx_status", "gl_transactions", ["status"])

    op.create_table(
        "gl_journal_entries",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "journal_entry_id", sa.String(36),
            sa.ForeignKey("gl_transactions.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("line_number", sa.Integer, nullable=False),
        sa.Column("account_id", sa.String(36), sa.ForeignKey("gl_accounts.id"), nullable=False),
        sa.Column("debit", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("credit", sa.Numeric(18, 2), nullable=False, server_default="0"),
        sa.Column("description", sa.Text, nullable=False),
        sa.CheckConstraint(
            "(debit = 0 AND credit > 0) OR (debit > 0 AND credit = 0)",
            name="ck_gl_line_debit_xor_credit",
        ),
    )
    op.create_index("ix_gl_line_account", "gl_journal_entries", ["account_id"])
    op.create_index("ix_gl_line_entry", "gl_journal_entries", ["journal_entry_id"])

    op.create_table(
        "float_gl_mappings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("float_account_id", sa.String(36), sa.ForeignKey("float_accounts.id"), nullable=True),
        sa.Column("gl_account_id", sa.String(36), sa.ForeignKey("gl_accounts.id"), nullable=False),
        sa.Column(
            "mapping_type",
            postgresql.ENUM(name="floatmappingtype", create_type=False),
            nullable=False, server_default="main_account",
        ),
        sa.Column("transaction_type", sa.String(100), nullable=True),
        sa.Column("branch_id", sa.String(36), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_float_gl_mappings_float", "float_gl_mappings", ["float_account_id", "is_active"],
    )
    op.create_index(
        "ix_float_gl_mappings_type_branch", "float_gl_mappings", ["transaction_type", "branch_id"],
    )

    op.create_table(
        "reconciliation_issues",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "severity",
            postgresql.ENUM(name="issueseverity", create_type=False),
            nullable=False, server_default="warning",
        ),
        sa.Column("operation", sa.String(100), nullable=False),
        sa.Column("error_type", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("traceback", sa.Text, nullable=True),
        sa.Column("journal_entry_id", sa.String(36), nullable=True),
        sa.Column("source_transaction_id", sa.String(100), nullable=True),
        sa.Column("actor", sa.String(100), nullable=True),
        sa.Column("resolved", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("resolved_by", sa.String(100), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_notes", sa.Text, nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("reconciliation_issues")
    op.drop_table("float_gl_mappings")
    op.drop_table("gl_journal_entries")
    op.drop_table("gl_transactions")
    op.drop_table("float_transactions")
    op.drop_table("float_accounts")
    op.drop_table("gl_mappings")
    op.drop_table("gl_accounts")
    for name in ["issueseverity", "floatmappingtype", "journalentrystatus", "glaccounttype"]:
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
