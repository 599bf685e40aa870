"""Transaction record store.

CRUD over ``ledger_transactions`` scoped to a household. Like
:class:`~howallet.accounts.AccountStore` it is bound to one session and never
commits; it also never touches balances. Pairing record changes with balance
deltas is the job of :class:`howallet.ledger.LedgerEngine`.

``delete`` returns the full pre-image of the removed record: the engine needs
the *old* kind, amount and accounts to reverse the balance effect.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from datetime import UTC, datetime

from db.models.ledger import LedgerAccount, LedgerTransaction
from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.orm import Session, aliased

from .amount import Amount
from .errors import NotFound
from .models import (
    ExportRow,
    Transaction,
    TransactionFilters,
    TransactionKind,
    as_utc,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def to_transaction(row: LedgerTransaction) -> Transaction:
    return Transaction(
        id=row.id,
        household_id=row.household_id,
        kind=TransactionKind(row.kind),
        description=row.description,
        amount=Amount(row.amount),
        account_id=row.account_id,
        destination_account_id=row.destination_account_id,
        tags=tuple(row.tags or ()),
        note=row.note,
        transacted_at=as_utc(row.transacted_at),
        created_by=row.created_by,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _filter_clauses(
    household_id: uuid.UUID, filters: TransactionFilters | None
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = [LedgerTransaction.household_id == household_id]
    if filters is None:
        return clauses
    if filters.date_from is not None:
        clauses.append(LedgerTransaction.transacted_at >= filters.date_from)
    if filters.date_to is not None:
        clauses.append(LedgerTransaction.transacted_at <= filters.date_to)
    if filters.kind is not None:
        clauses.append(LedgerTransaction.kind == TransactionKind(filters.kind).value)
    if filters.account_id is not None:
        clauses.append(
            or_(
                LedgerTransaction.account_id == filters.account_id,
                LedgerTransaction.destination_account_id == filters.account_id,
            )
        )
    return clauses


class TransactionStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    def _row(self, tx_id: uuid.UUID, household_id: uuid.UUID, *, lock: bool) -> LedgerTransaction:
        stmt = (
            select(LedgerTransaction)
            .where(
                LedgerTransaction.id == tx_id,
                LedgerTransaction.household_id == household_id,
            )
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.scalars(stmt).one_or_none()
        if row is None:
            raise NotFound("transaction", tx_id)
        return row

    # ---- reads ----------------------------------------------------------

    def get(self, tx_id: uuid.UUID, household_id: uuid.UUID) -> Transaction:
        return to_transaction(self._row(tx_id, household_id, lock=False))

    def get_for_update(self, tx_id: uuid.UUID, household_id: uuid.UUID) -> Transaction:
        return to_transaction(self._row(tx_id, household_id, lock=True))

    def list(
        self,
        household_id: uuid.UUID,
        filters: TransactionFilters | None = None,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Transaction]:
        """Newest first by ``transacted_at``; ties broken by creation time."""

        stmt = (
            select(LedgerTransaction)
            .where(*_filter_clauses(household_id, filters))
            .order_by(
                LedgerTransaction.transacted_at.desc(),
                LedgerTransaction.created_at.desc(),
                LedgerTransaction.id.asc(),
            )
            .limit(limit)
            .offset(offset)
        )
        return [to_transaction(r) for r in self.session.scalars(stmt)]

    def count(self, household_id: uuid.UUID, filters: TransactionFilters | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(LedgerTransaction)
            .where(*_filter_clauses(household_id, filters))
        )
        return int(self.session.scalar(stmt) or 0)

    def iter_household(self, household_id: uuid.UUID) -> Iterator[Transaction]:
        """Every transaction of the household, unordered (used for audits)."""

        stmt = select(LedgerTransaction).where(LedgerTransaction.household_id == household_id)
        for row in self.session.scalars(stmt):
            yield to_transaction(row)

    def list_for_export(
        self,
        household_id: uuid.UUID,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[ExportRow]:
        """Rows joined with source/destination account names, newest first."""

        src = aliased(LedgerAccount)
        dst = aliased(LedgerAccount)
        filters = TransactionFilters(date_from=date_from, date_to=date_to)
        stmt = (
            select(LedgerTransaction, src.name, src.currency, dst.name)
            .join(src, src.id == LedgerTransaction.account_id)
            .outerjoin(dst, dst.id == LedgerTransaction.destination_account_id)
            .where(*_filter_clauses(household_id, filters))
            .order_by(
                LedgerTransaction.transacted_at.desc(),
                LedgerTransaction.created_at.desc(),
            )
        )
        out: list[ExportRow] = []
        for tx, account_name, currency, destination_name in self.session.execute(stmt):
            out.append(
                ExportRow(
                    transacted_at=as_utc(tx.transacted_at),
                    description=tx.description,
                    amount=Amount(tx.amount),
                    kind=TransactionKind(tx.kind),
                    tags=tuple(tx.tags or ()),
                    note=tx.note,
                    account_name=account_name,
                    account_currency=currency,
                    destination_account_name=destination_name,
                )
            )
        return out

    # ---- writes ---------------------------------------------------------

    def create(
        self,
        household_id: uuid.UUID,
        *,
        kind: TransactionKind,
        description: str,
        amount: Amount,
        account_id: uuid.UUID,
        destination_account_id: uuid.UUID | None,
        tags: list[str] | tuple[str, ...],
        note: str | None,
        transacted_at: datetime,
        created_by: uuid.UUID,
    ) -> Transaction:
        now = _utcnow()
        row = LedgerTransaction(
            id=uuid.uuid4(),
            household_id=household_id,
            kind=TransactionKind(kind).value,
            description=description,
            amount=amount.value,
            account_id=account_id,
            destination_account_id=destination_account_id,
            tags=list(tags),
            note=note,
            transacted_at=as_utc(transacted_at),
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self.session.flush()
        return to_transaction(row)

    def update(
        self,
        tx_id: uuid.UUID,
        household_id: uuid.UUID,
        *,
        kind: TransactionKind,
        description: str,
        amount: Amount,
        account_id: uuid.UUID,
        destination_account_id: uuid.UUID | None,
        tags: list[str] | tuple[str, ...],
        note: str | None,
        transacted_at: datetime,
    ) -> Transaction:
        """Replace every mutable field of the record."""

        row = self._row(tx_id, household_id, lock=True)
        row.kind = TransactionKind(kind).value
        row.description = description
        row.amount = amount.value
        row.account_id = account_id
        row.destination_account_id = destination_account_id
        row.tags = list(tags)
        row.note = note
        row.transacted_at = as_utc(transacted_at)
        row.updated_at = _utcnow()
        self.session.flush()
        return to_transaction(row)

    def delete(self, tx_id: uuid.UUID, household_id: uuid.UUID) -> Transaction:
        """Delete the record and return its pre-image."""

        row = self._row(tx_id, household_id, lock=True)
        before = to_transaction(row)
        self.session.delete(row)
        self.session.flush()
        return before


__all__ = ["TransactionStore", "to_transaction"]
