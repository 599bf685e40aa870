"""Ledger mutation engine.

Every create/update/delete of a transaction runs as one unit of work that
changes the transaction record *and* the affected account balances, or
changes nothing.

The balance effect of a transaction is defined once, by :func:`deltas`:

=========  ==============  ===================
kind       source account  destination account
=========  ==============  ===================
income     +amount         (none)
expense    -amount         (none)
transfer   -amount         +amount
=========  ==============  ===================

Reversal is :func:`reverse` of the same output, never a second hand-written
table. On update, the reversal is computed from the stored pre-image (old
kind, old amount, old accounts), not from the new input.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from .amount import Amount
from .errors import (
    DestinationNotAllowed,
    SameAccountTransfer,
    TransferMissingDestination,
)
from .logging_setup import get_logger, kv
from .models import BalanceDrift, Transaction, TransactionInput, TransactionKind
from .unit_of_work import Stores, UnitOfWork

_logger = get_logger("howallet.ledger")


# ---------------------------------------------------------------------------
# Deltas
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Delta:
    """A signed balance change for one account."""

    account_id: uuid.UUID
    amount: Amount


def deltas(
    kind: TransactionKind,
    amount: Amount,
    account_id: uuid.UUID,
    destination_account_id: uuid.UUID | None = None,
) -> tuple[Delta, ...]:
    """Balance effect of a transaction, in application order."""

    match TransactionKind(kind):
        case TransactionKind.INCOME:
            return (Delta(account_id, amount),)
        case TransactionKind.EXPENSE:
            return (Delta(account_id, -amount),)
        case TransactionKind.TRANSFER:
            if destination_account_id is None:
                raise TransferMissingDestination()
            return (Delta(account_id, -amount), Delta(destination_account_id, amount))
    raise ValueError(f"unknown transaction kind: {kind!r}")  # pragma: no cover


def transaction_deltas(tx: Transaction) -> tuple[Delta, ...]:
    return deltas(tx.kind, tx.amount, tx.account_id, tx.destination_account_id)


def reverse(ds: Iterable[Delta]) -> tuple[Delta, ...]:
    return tuple(Delta(d.account_id, -d.amount) for d in ds)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidatedTransaction:
    """A :class:`TransactionInput` whose amount and accounts passed the rules."""

    kind: TransactionKind
    description: str
    amount: Amount
    account_id: uuid.UUID
    destination_account_id: uuid.UUID | None
    tags: tuple[str, ...]
    note: str | None
    transacted_at: datetime

    @property
    def deltas(self) -> tuple[Delta, ...]:
        return deltas(self.kind, self.amount, self.account_id, self.destination_account_id)

    def fields(self) -> dict[str, object]:
        return {
            "kind": self.kind,
            "description": self.description,
            "amount": self.amount,
            "account_id": self.account_id,
            "destination_account_id": self.destination_account_id,
            "tags": self.tags,
            "note": self.note,
            "transacted_at": self.transacted_at,
        }


def validate_input(data: TransactionInput) -> ValidatedTransaction:
    """Apply the ledger rules that need no database access.

    Raises
    ------
    InvalidAmount
        Amount is malformed or not strictly positive.
    TransferMissingDestination
        ``transfer`` without ``destination_account_id``.
    DestinationNotAllowed
        ``income``/``expense`` with a ``destination_account_id``.
    SameAccountTransfer
        Transfer whose source and destination are the same account.
    """

    amount = Amount.parse_positive(data.amount)
    kind = TransactionKind(data.kind)
    dest = data.destination_account_id
    if kind is TransactionKind.TRANSFER:
        if dest is None:
            raise TransferMissingDestination()
        if dest == data.account_id:
            raise SameAccountTransfer()
    elif dest is not None:
        raise DestinationNotAllowed(kind.value)
    return ValidatedTransaction(
        kind=kind,
        description=data.description,
        amount=amount,
        account_id=data.account_id,
        destination_account_id=dest,
        tags=tuple(data.tags),
        note=data.note,
        transacted_at=data.transacted_at,
    )


# ---------------------------------------------------------------------------
# In-transaction steps
# ---------------------------------------------------------------------------


def lock_accounts(stores: Stores, household_id: uuid.UUID, ids: Iterable[uuid.UUID]) -> None:
    """Row-lock the household's accounts in id order (``NotFound`` if any is missing).

    A fixed lock order keeps two opposite transfers between the same pair of
    accounts from deadlocking each other.
    """

    for account_id in sorted(set(ids)):
        stores.accounts.get_for_update(account_id, household_id)


def apply_deltas(stores: Stores, ds: Iterable[Delta]) -> None:
    for d in ds:
        stores.accounts.apply_delta(d.account_id, d.amount)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class LedgerEngine:
    """Create, update and delete transactions together with their balance effect."""

    def __init__(self, unit_of_work: UnitOfWork) -> None:
        self.uow = unit_of_work

    def create(
        self, household_id: uuid.UUID, user_id: uuid.UUID, data: TransactionInput
    ) -> Transaction:
        v = validate_input(data)

        def _create(stores: Stores) -> Transaction:
            lock_accounts(stores, household_id, (d.account_id for d in v.deltas))
            tx = stores.transactions.create(household_id, created_by=user_id, **v.fields())
            apply_deltas(stores, v.deltas)
            return tx

        tx = self.uow.run_atomically(_create)
        _logger.info(
            "transaction created %s",
            kv(id=tx.id, household=household_id, kind=tx.kind.value, by=user_id),
        )
        return tx

    def update(
        self,
        tx_id: uuid.UUID,
        household_id: uuid.UUID,
        user_id: uuid.UUID,
        data: TransactionInput,
    ) -> Transaction:
        """Replace a transaction, reversing its old balance effect first."""

        v = validate_input(data)

        def _update(stores: Stores) -> Transaction:
            before = stores.transactions.get_for_update(tx_id, household_id)
            old = transaction_deltas(before)
            new = v.deltas
            lock_accounts(stores, household_id, (d.account_id for d in (*old, *new)))
            apply_deltas(stores, reverse(old))
            tx = stores.transactions.update(tx_id, household_id, **v.fields())
            apply_deltas(stores, new)
            return tx

        tx = self.uow.run_atomically(_update)
        _logger.info(
            "transaction updated %s",
            kv(id=tx.id, household=household_id, kind=tx.kind.value, by=user_id),
        )
        return tx

    def delete(self, tx_id: uuid.UUID, household_id: uuid.UUID) -> Transaction:
        """Delete a transaction and undo its balance effect; returns the pre-image."""

        def _delete(stores: Stores) -> Transaction:
            before = stores.transactions.delete(tx_id, household_id)
            old = transaction_deltas(before)
            lock_accounts(stores, household_id, (d.account_id for d in old))
            apply_deltas(stores, reverse(old))
            return before

        before = self.uow.run_atomically(_delete)
        _logger.info(
            "transaction deleted %s",
            kv(id=before.id, household=household_id, kind=before.kind.value),
        )
        return before

    def verify_balances(self, household_id: uuid.UUID) -> list[BalanceDrift]:
        """Compare stored balances with ``opening_balance + sum(deltas)``.

        Returns one :class:`BalanceDrift` per account that disagrees; an
        empty list means the household's ledger is consistent.
        """

        def _verify(stores: Stores) -> list[BalanceDrift]:
            accounts = stores.accounts.list(household_id)
            expected = {a.id: a.opening_balance for a in accounts}
            for tx in stores.transactions.iter_household(household_id):
                for d in transaction_deltas(tx):
                    expected[d.account_id] = expected.get(d.account_id, Amount.zero()) + d.amount
            return [
                BalanceDrift(account_id=a.id, stored=a.balance, expected=expected[a.id])
                for a in accounts
                if a.balance != expected[a.id]
            ]

        drift = self.uow.run_atomically(_verify)
        if drift:
            _logger.warning(
                "balance drift detected %s", kv(household=household_id, accounts=len(drift))
            )
        return drift


__all__ = [
    "Delta",
    "LedgerEngine",
    "ValidatedTransaction",
    "apply_deltas",
    "deltas",
    "lock_accounts",
    "reverse",
    "transaction_deltas",
    "validate_input",
]
