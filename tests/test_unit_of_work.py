from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

import howallet.unit_of_work as uow_mod
from howallet.amount import Amount
from howallet.errors import NotFound, StorageError
from howallet.models import AccountKind
from howallet.unit_of_work import Stores, UnitOfWork
from tests.helpers.ledger import balance_of, open_account


def test_commit_on_success(uow: UnitOfWork, household, user) -> None:
    acct = uow.run_atomically(
        lambda s: s.accounts.create(household, "A", AccountKind.CASH, Amount.parse("1"), "USD", user)
    )
    assert balance_of(uow, household, acct.id) == Decimal("1")


def test_domain_error_rolls_back_and_propagates(uow: UnitOfWork, household, user) -> None:
    acct = open_account(uow, household, user, "A", "10")

    def _work(s: Stores) -> None:
        s.accounts.apply_delta(acct.id, Amount.parse("5"))
        raise NotFound("transaction", uuid.uuid4())

    with pytest.raises(NotFound):
        uow.run_atomically(_work)
    assert balance_of(uow, household, acct.id) == Decimal("10")


def test_sqlalchemy_error_becomes_storage_error(uow: UnitOfWork, household, user) -> None:
    acct = open_account(uow, household, user, "A", "10")

    def _work(s: Stores) -> None:
        s.accounts.apply_delta(acct.id, Amount.parse("5"))
        # Violates ck_ledger_account_currency.
        s.session.execute(
            text("UPDATE ledger_accounts SET currency = 'TOOLONG' WHERE household_id = :h"),
            {"h": household.hex},
        )

    with pytest.raises(StorageError) as exc:
        uow.run_atomically(_work)
    assert isinstance(exc.value.__cause__, IntegrityError)
    assert balance_of(uow, household, acct.id) == Decimal("10")


def test_integrity_errors_are_not_retried(uow: UnitOfWork) -> None:
    calls = []

    def _work(s: Stores) -> None:
        calls.append(1)
        raise IntegrityError("INSERT ...", {}, Exception("duplicate"))

    with pytest.raises(StorageError):
        uow.run_atomically(_work, retries=3)
    assert len(calls) == 1


def test_operational_errors_are_retried(uow: UnitOfWork, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(uow_mod.time, "sleep", lambda _s: None)
    calls = []

    def _work(s: Stores) -> str:
        calls.append(1)
        if len(calls) < 3:
            raise OperationalError("UPDATE ...", {}, Exception("database is locked"))
        return "done"

    assert uow.run_atomically(_work, retries=2) == "done"
    assert len(calls) == 3


def test_retries_exhausted(database_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(uow_mod.time, "sleep", lambda _s: None)
    uow = UnitOfWork(database_url=database_url, retries=1)
    calls = []

    def _work(s: Stores) -> None:
        calls.append(1)
        raise OperationalError("SELECT 1", {}, Exception("deadlock"))

    with pytest.raises(StorageError) as exc:
        uow.run_atomically(_work)
    assert isinstance(exc.value.__cause__, OperationalError)
    assert len(calls) == 2


def test_negative_retries_rejected() -> None:
    with pytest.raises(ValueError):
        UnitOfWork(retries=-1)


def test_statement_timeout_skipped_on_sqlite(database_url: str, household, user) -> None:
    uow = UnitOfWork(database_url=database_url, statement_timeout_ms=1000)
    acct = open_account(uow, household, user, "A", "3")
    assert balance_of(uow, household, acct.id) == Decimal("3")
