from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Balances and amounts share one storage scale. Four fractional digits keep
# sub-cent remainders exact; the precision allows 15 integer digits.
MONEY = Numeric(19, 4)


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: ledger_accounts
# ---------------------------


class LedgerAccount(Base):
    __tablename__ = "ledger_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Household and user ids are issued by the membership service; no FK here.
    household_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False, server_default=text("'card'"))
    # Running balance. Only ever written by INSERT (opening value) and by
    # `balance = balance + :delta` increments.
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, server_default=text("0"))
    opening_balance: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, server_default=text("0")
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, server_default=text("'USD'")
    )
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint("kind in ('card','deposit','cash')", name="ck_ledger_account_kind"),
        CheckConstraint("length(currency) = 3", name="ck_ledger_account_currency"),
    )


# ---------------------------
# Core: ledger_transactions
# ---------------------------


class LedgerTransaction(Base):
    __tablename__ = "ledger_transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str] = mapped_column(String(512), nullable=False)
    # Unsigned magnitude; the sign is derived from `kind` when applied.
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    # RESTRICT: an account cannot be deleted while any row references it,
    # regardless of what the application layer checked beforehand.
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("ledger_accounts.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    destination_account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("ledger_accounts.id", ondelete="RESTRICT"),
        nullable=True,
    )
    tags: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=list, server_default=text("'[]'")
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    transacted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("now()")
    )

    __table_args__ = (
        CheckConstraint(
            "kind in ('income','expense','transfer')", name="ck_ledger_tx_kind"
        ),
        CheckConstraint("amount > 0", name="ck_ledger_tx_amount_positive"),
        CheckConstraint(
            (
                "(kind = 'transfer' AND destination_account_id IS NOT NULL "
                "AND destination_account_id <> account_id) OR "
                "(kind <> 'transfer' AND destination_account_id IS NULL)"
            ),
            name="ck_ledger_tx_destination",
        ),
        Index("ix_ledger_tx_household_transacted", "household_id", "transacted_at"),
        Index("ix_ledger_tx_destination", "destination_account_id"),
    )


__all__ = [
    "MONEY",
    "Base",
    "LedgerAccount",
    "LedgerTransaction",
]
