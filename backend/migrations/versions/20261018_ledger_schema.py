"""Ledger schema: stores, chart of accounts, journal entries, cash on hand

Revision ID: 20261018_ledger_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_ledger_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    ]


def upgrade():
    op.create_table(
        "stores",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("code", name="uq_stores_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stores_code", "stores", ["code"], unique=False)
    op.create_index("ix_stores_is_active", "stores", ["is_active"], unique=False)

    op.create_table(
        "chart_of_accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("account_code", sa.String(length=32), nullable=True),
        sa.Column("account_name", sa.String(length=128), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("parent_account_id", sa.Integer(), nullable=True),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_chart_of_accounts_store_id_stores"),
        sa.ForeignKeyConstraint(
            ["parent_account_id"], ["chart_of_accounts.id"],
            name="fk_chart_of_accounts_parent_account_id_chart_of_accounts",
        ),
        sa.UniqueConstraint("store_id", "account_name", name="uq_chart_of_accounts_store_name"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_chart_of_accounts_store_id", "chart_of_accounts", ["store_id"], unique=False)
    op.create_index("ix_chart_of_accounts_account_type", "chart_of_accounts", ["account_type"], unique=False)
    op.create_index(
        "ix_chart_of_accounts_store_type_active",
        "chart_of_accounts",
        ["store_id", "account_type", "is_active"],
        unique=False,
    )

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_document_sequences_store_id_stores"),
        sa.UniqueConstraint("store_id", "document_type", name="uq_doc_sequences_store_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_store_id", "document_sequences", ["store_id"], unique=False)
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"], unique=False)

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("entry_number", sa.String(length=32), nullable=False),
        sa.Column("entry_type", sa.String(length=16), nullable=False, server_default="manual"),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("total_debit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_credit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_balanced", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("entered_by", sa.Integer(), nullable=True),
        sa.Column("posted_by", sa.Integer(), nullable=True),
        sa.Column("posted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_journal_entries_store_id_stores"),
        sa.UniqueConstraint("store_id", "entry_number", name="uq_journal_entries_store_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_journal_entries_store_id", "journal_entries", ["store_id"], unique=False)
    op.create_index("ix_journal_entries_entry_date", "journal_entries", ["entry_date"], unique=False)
    op.create_index("ix_journal_entries_status", "journal_entries", ["status"], unique=False)
    op.create_index(
        "ix_journal_entries_store_status_date",
        "journal_entries",
        ["store_id", "status", "entry_date"],
        unique=False,
    )
    op.create_index(
        "ix_journal_entries_reference",
        "journal_entries",
        ["store_id", "reference_type", "reference_id"],
        unique=False,
    )

    op.create_table(
        "journal_entry_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("journal_entry_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("debit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("credit_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(
            ["journal_entry_id"], ["journal_entries.id"],
            name="fk_journal_entry_lines_journal_entry_id_journal_entries",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["account_id"], ["chart_of_accounts.id"],
            name="fk_journal_entry_lines_account_id_chart_of_accounts",
        ),
        sa.UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_entry_lines_entry_line"),
        sa.CheckConstraint(
            "(debit_cents > 0 AND credit_cents = 0) OR (debit_cents = 0 AND credit_cents > 0)",
            name="ck_journal_entry_lines_one_sided",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_journal_entry_lines_journal_entry_id", "journal_entry_lines", ["journal_entry_id"], unique=False)
    op.create_index("ix_journal_entry_lines_account", "journal_entry_lines", ["account_id"], unique=False)

    op.create_table(
        "cash_on_hand",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_sequence_number", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_transaction_id", sa.String(length=64), nullable=True),
        sa.Column("last_transaction_type", sa.String(length=32), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_cash_on_hand_store_id_stores"),
        sa.UniqueConstraint("store_id", name="uq_cash_on_hand_store"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "cash_transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("store_id", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("transaction_type", sa.String(length=32), nullable=False),
        sa.Column("source_id", sa.String(length=64), nullable=True),
        sa.Column("reverses_transaction_id", sa.Integer(), nullable=True),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("balance_before_cents", sa.Integer(), nullable=False),
        sa.Column("balance_after_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("entered_by", sa.Integer(), nullable=True),
        sa.Column("idempotency_key", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["store_id"], ["stores.id"], name="fk_cash_transactions_store_id_stores"),
        sa.ForeignKeyConstraint(
            ["reverses_transaction_id"], ["cash_transactions.id"],
            name="fk_cash_transactions_reverses_transaction_id_cash_transactions",
        ),
        sa.UniqueConstraint("store_id", "sequence_number", name="uq_cash_transactions_store_sequence"),
        sa.UniqueConstraint("store_id", "idempotency_key", name="uq_cash_transactions_store_idempotency"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cash_transactions_store_id", "cash_transactions", ["store_id"], unique=False)
    op.create_index("ix_cash_transactions_transaction_type", "cash_transactions", ["transaction_type"], unique=False)
    op.create_index("ix_cash_transactions_store_date", "cash_transactions", ["store_id", "transaction_date"], unique=False)
    op.create_index(
        "ix_cash_transactions_source",
        "cash_transactions",
        ["store_id", "transaction_type", "source_id"],
        unique=False,
    )


def downgrade():
    op.drop_table("cash_transactions")
    op.drop_table("cash_on_hand")
    op.drop_table("journal_entry_lines")
    op.drop_table("journal_entries")
    op.drop_table("document_sequences")
    op.drop_table("chart_of_accounts")
    op.drop_table("stores")
