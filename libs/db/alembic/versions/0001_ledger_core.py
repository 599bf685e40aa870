# ruff: noqa: I001
"""Ledger core tables: accounts and transactions.

Revision ID: 0001_ledger_core
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations  # ruff: noqa: I001

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001_ledger_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ledger_accounts
    op.create_table(
        "ledger_accounts",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False, server_default=sa.text("'card'")),
        sa.Column("balance", sa.Numeric(19, 4), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "opening_balance",
            sa.Numeric(19, 4),
            nullable=False,
            server_default=sa.text("0"),
        ),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'USD'")),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint("kind in ('card','deposit','cash')", name="ck_ledger_account_kind"),
        sa.CheckConstraint("length(currency) = 3", name="ck_ledger_account_currency"),
    )
    op.create_index(
        "ix_ledger_accounts_household_id", "ledger_accounts", ["household_id"], unique=False
    )

    # ledger_transactions
    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("household_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("description", sa.String(512), nullable=False),
        sa.Column("amount", sa.Numeric(19, 4), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("destination_account_id", sa.Uuid(), nullable=True),
        sa.Column(
            "tags",
            postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite"),
            nullable=False,
            server_default=sa.text("'[]'"),
        ),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("transacted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["ledger_accounts.id"],
            name="fk_ledger_tx_account",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["destination_account_id"],
            ["ledger_accounts.id"],
            name="fk_ledger_tx_destination_account",
            ondelete="RESTRICT",
        ),
        sa.CheckConstraint("kind in ('income','expense','transfer')", name="ck_ledger_tx_kind"),
        sa.CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
        sa.CheckConstraint(
            (
                "(kind = 'transfer' AND destination_account_id IS NOT NULL "
                "AND destination_account_id <> account_id) OR "
                "(kind <> 'transfer' AND destination_account_id IS NULL)"
            ),
            name="ck_ledger_tx_destination",
        ),
    )

    # Indexes
    op.create_index(
        "ix_ledger_transactions_household_id",
        "ledger_transactions",
        ["household_id"],
        unique=False,
    )
    op.create_index(
        "ix_ledger_transactions_account_id",
        "ledger_transactions",
        ["account_id"],
        unique=False,
    )
    op.create_index(
        "ix_ledger_tx_destination",
        "ledger_transactions",
        ["destination_account_id"],
        unique=False,
    )
    op.create_index(
        "ix_ledger_tx_household_transacted",
        "ledger_transactions",
        ["household_id", "transacted_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_ledger_tx_household_transacted", table_name="ledger_transactions")
    op.drop_index("ix_ledger_tx_destination", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_account_id", table_name="ledger_transactions")
    op.drop_index("ix_ledger_transactions_household_id", table_name="ledger_transactions")
    op.drop_table("ledger_transactions")
    op.drop_index("ix_ledger_accounts_household_id", table_name="ledger_accounts")
    op.drop_table("ledger_accounts")
