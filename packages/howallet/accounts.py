"""Account store: account records and atomic balance increments.

An :class:`AccountStore` is bound to one SQLAlchemy ``Session``; it never
commits. Transaction boundaries belong to
:class:`howallet.unit_of_work.UnitOfWork`.

Balance rules
-------------
- ``create`` is the only place a balance is written directly (the opening
  balance, stored twice: ``balance`` and ``opening_balance``).
- ``apply_delta`` issues ``UPDATE ... SET balance = balance + :delta`` so two
  concurrent units of work touching the same account serialize on the row
  instead of losing an update.
- Reads use ``populate_existing`` so a later read in the same unit of work
  sees earlier increments.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from db.models.ledger import LedgerAccount, LedgerTransaction
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .amount import Amount
from .errors import HasTransactions, NotFound
from .logging_setup import get_logger
from .models import Account, AccountKind, as_utc, normalize_currency

_logger = get_logger("howallet.accounts")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def to_account(row: LedgerAccount) -> Account:
    return Account(
        id=row.id,
        household_id=row.household_id,
        name=row.name,
        kind=AccountKind(row.kind),
        balance=Amount(row.balance),
        opening_balance=Amount(row.opening_balance),
        currency=row.currency,
        created_by=row.created_by,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


class AccountStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    # ---- reads ----------------------------------------------------------

    def _row(self, account_id: uuid.UUID, household_id: uuid.UUID, *, lock: bool) -> LedgerAccount:
        stmt = (
            select(LedgerAccount)
            .where(LedgerAccount.id == account_id, LedgerAccount.household_id == household_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        row = self.session.scalars(stmt).one_or_none()
        if row is None:
            # Same error whether the id is unknown or owned by another household.
            raise NotFound("account", account_id)
        return row

    def get(self, account_id: uuid.UUID, household_id: uuid.UUID) -> Account:
        return to_account(self._row(account_id, household_id, lock=False))

    def get_for_update(self, account_id: uuid.UUID, household_id: uuid.UUID) -> Account:
        """Like :meth:`get`, but row-locks the account until the unit of work ends."""

        return to_account(self._row(account_id, household_id, lock=True))

    def list(self, household_id: uuid.UUID) -> list[Account]:
        stmt = (
            select(LedgerAccount)
            .where(LedgerAccount.household_id == household_id)
            .order_by(LedgerAccount.created_at.asc(), LedgerAccount.id.asc())
            .execution_options(populate_existing=True)
        )
        return [to_account(r) for r in self.session.scalars(stmt)]

    def count_transactions_referencing(self, account_id: uuid.UUID) -> int:
        """Count transactions using the account as source or destination."""

        stmt = (
            select(func.count())
            .select_from(LedgerTransaction)
            .where(
                or_(
                    LedgerTransaction.account_id == account_id,
                    LedgerTransaction.destination_account_id == account_id,
                )
            )
        )
        return int(self.session.scalar(stmt) or 0)

    # ---- writes ---------------------------------------------------------

    def create(
        self,
        household_id: uuid.UUID,
        name: str,
        kind: AccountKind,
        initial_balance: Amount,
        currency: str,
        creator_id: uuid.UUID,
    ) -> Account:
        now = _utcnow()
        row = LedgerAccount(
            id=uuid.uuid4(),
            household_id=household_id,
            name=name,
            kind=AccountKind(kind).value,
            balance=initial_balance.value,
            opening_balance=initial_balance.value,
            currency=normalize_currency(currency),
            created_by=creator_id,
            created_at=now,
            updated_at=now,
        )
        self.session.add(row)
        self.session.flush()
        return to_account(row)

    def update(
        self,
        account_id: uuid.UUID,
        household_id: uuid.UUID,
        *,
        name: str | None = None,
        kind: AccountKind | None = None,
        currency: str | None = None,
    ) -> Account:
        """Partial update of descriptive fields. The balance is not accepted here."""

        row = self._row(account_id, household_id, lock=True)
        if name is not None:
            row.name = name
        if kind is not None:
            row.kind = AccountKind(kind).value
        if currency is not None:
            row.currency = normalize_currency(currency)
        row.updated_at = _utcnow()
        self.session.flush()
        return to_account(row)

    def apply_delta(self, account_id: uuid.UUID, delta: Amount) -> None:
        """Atomically add ``delta`` (signed) to the account balance."""

        stmt = (
            update(LedgerAccount)
            .where(LedgerAccount.id == account_id)
            .values(balance=LedgerAccount.balance + delta.value, updated_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            raise NotFound("account", account_id)
        _logger.debug("balance delta applied account=%s delta=%s", account_id, delta)

    def delete(self, account_id: uuid.UUID, household_id: uuid.UUID) -> None:
        """Delete an account that no transaction references.

        The account row is locked first; the reference count and the delete
        then run in the same unit of work. The ``RESTRICT`` foreign keys on
        ``ledger_transactions`` reject the delete if a reference slipped in
        anyway, which is reported the same way.
        """

        self._row(account_id, household_id, lock=True)
        count = self.count_transactions_referencing(account_id)
        if count:
            raise HasTransactions(account_id, count)
        try:
            self.session.execute(
                delete(LedgerAccount)
                .where(
                    LedgerAccount.id == account_id,
                    LedgerAccount.household_id == household_id,
                )
                .execution_options(synchronize_session=False)
            )
            self.session.flush()
        except IntegrityError as e:
            raise HasTransactions(account_id) from e


__all__ = ["AccountStore", "to_account"]
