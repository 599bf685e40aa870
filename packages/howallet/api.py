"""Public API for the ``howallet`` package.

Module-level functions composing the stores, the ledger engine and the unit
of work. This is the surface callers (the CLI, an HTTP layer) use; they pass
household/user ids they have already authenticated and resolved.

Inputs may be given either as the pydantic models from
:mod:`howallet.models` or as plain mappings using the JSON field names
(``type``, ``amount``, ``account_id``...); mapping validation failures are
raised as :class:`~howallet.errors.InvalidInput`.

Every function takes an optional ``uow``. When omitted, a default
:class:`~howallet.unit_of_work.UnitOfWork` bound to ``DATABASE_URL`` is used.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import IO, Any, TypeVar

from pydantic import BaseModel

from .amount import Amount
from .errors import InvalidInput
from .export import write_transactions_csv
from .ledger import LedgerEngine
from .logging_setup import get_logger, kv
from .models import (
    Account,
    AccountCreate,
    AccountUpdate,
    BalanceDrift,
    Page,
    Transaction,
    TransactionFilters,
    TransactionInput,
    build_input,
)
from .unit_of_work import Stores, UnitOfWork

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 500

_logger = get_logger("howallet.api")


M = TypeVar("M", bound=BaseModel)


def _coerce(model: type[M], data: M | Mapping[str, Any]) -> M:
    if isinstance(data, model):
        return data
    return build_input(model, data)


def _uow(uow: UnitOfWork | None) -> UnitOfWork:
    return uow if uow is not None else UnitOfWork()


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------


def open_account(
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    data: AccountCreate | Mapping[str, Any],
    *,
    uow: UnitOfWork | None = None,
) -> Account:
    """Create an account with its opening balance (which may be zero or negative)."""

    req = _coerce(AccountCreate, data)
    opening = Amount.parse(req.balance)
    account = _uow(uow).run_atomically(
        lambda s: s.accounts.create(
            household_id, req.name, req.kind, opening, req.currency, user_id
        )
    )
    _logger.info(
        "account opened %s", kv(id=account.id, household=household_id, kind=account.kind.value)
    )
    return account


def get_account(
    account_id: uuid.UUID, household_id: uuid.UUID, *, uow: UnitOfWork | None = None
) -> Account:
    return _uow(uow).run_atomically(lambda s: s.accounts.get(account_id, household_id))


def list_accounts(household_id: uuid.UUID, *, uow: UnitOfWork | None = None) -> list[Account]:
    return _uow(uow).run_atomically(lambda s: s.accounts.list(household_id))


def update_account(
    account_id: uuid.UUID,
    household_id: uuid.UUID,
    data: AccountUpdate | Mapping[str, Any],
    *,
    uow: UnitOfWork | None = None,
) -> Account:
    req = _coerce(AccountUpdate, data)
    return _uow(uow).run_atomically(
        lambda s: s.accounts.update(
            account_id, household_id, name=req.name, kind=req.kind, currency=req.currency
        )
    )


def delete_account(
    account_id: uuid.UUID, household_id: uuid.UUID, *, uow: UnitOfWork | None = None
) -> None:
    """Delete an account; raises ``HasTransactions`` while any transaction references it."""

    _uow(uow).run_atomically(lambda s: s.accounts.delete(account_id, household_id))
    _logger.info("account deleted %s", kv(id=account_id, household=household_id))


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------


def record_transaction(
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    data: TransactionInput | Mapping[str, Any],
    *,
    uow: UnitOfWork | None = None,
) -> Transaction:
    return LedgerEngine(_uow(uow)).create(household_id, user_id, _coerce(TransactionInput, data))


def update_transaction(
    tx_id: uuid.UUID,
    household_id: uuid.UUID,
    user_id: uuid.UUID,
    data: TransactionInput | Mapping[str, Any],
    *,
    uow: UnitOfWork | None = None,
) -> Transaction:
    return LedgerEngine(_uow(uow)).update(
        tx_id, household_id, user_id, _coerce(TransactionInput, data)
    )


def delete_transaction(
    tx_id: uuid.UUID, household_id: uuid.UUID, *, uow: UnitOfWork | None = None
) -> Transaction:
    return LedgerEngine(_uow(uow)).delete(tx_id, household_id)


def get_transaction(
    tx_id: uuid.UUID, household_id: uuid.UUID, *, uow: UnitOfWork | None = None
) -> Transaction:
    return _uow(uow).run_atomically(lambda s: s.transactions.get(tx_id, household_id))


def list_transactions(
    household_id: uuid.UUID,
    filters: TransactionFilters | Mapping[str, Any] | None = None,
    *,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
    uow: UnitOfWork | None = None,
) -> Page:
    """One page of transactions (newest first) plus the total matching count.

    A non-positive ``limit`` falls back to the default page size; larger
    limits are capped at ``MAX_PAGE_SIZE``.
    """

    if offset < 0:
        raise InvalidInput(f"offset must be >= 0, got {offset}")
    if limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    limit = min(limit, MAX_PAGE_SIZE)
    f = None if filters is None else _coerce(TransactionFilters, filters)

    def _page(s: Stores) -> Page:
        items = s.transactions.list(household_id, f, limit=limit, offset=offset)
        return Page(items=items, total=s.transactions.count(household_id, f), limit=limit, offset=offset)

    return _uow(uow).run_atomically(_page)


# ---------------------------------------------------------------------------
# Export and audit
# ---------------------------------------------------------------------------


def export_transactions_csv(
    household_id: uuid.UUID,
    stream: IO[str],
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    uow: UnitOfWork | None = None,
) -> int:
    """Write the household's transactions as Buxfer CSV; returns the data line count."""

    rows = _uow(uow).run_atomically(
        lambda s: s.transactions.list_for_export(household_id, date_from, date_to)
    )
    return write_transactions_csv(rows, stream)


def verify_balances(
    household_id: uuid.UUID, *, uow: UnitOfWork | None = None
) -> list[BalanceDrift]:
    return LedgerEngine(_uow(uow)).verify_balances(household_id)


__all__ = [
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    "delete_account",
    "delete_transaction",
    "export_transactions_csv",
    "get_account",
    "get_transaction",
    "list_accounts",
    "list_transactions",
    "open_account",
    "record_transaction",
    "update_account",
    "update_transaction",
    "verify_balances",
]
