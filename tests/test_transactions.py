from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta, timezone

import pytest

from howallet import api
from howallet.errors import InvalidInput
from howallet.models import TransactionFilters, TransactionKind
from howallet.unit_of_work import UnitOfWork
from tests.helpers.ledger import open_account, tx_payload

_DAY = datetime(2024, 5, 10, 9, 30, tzinfo=UTC)


@pytest.fixture
def ledger(uow: UnitOfWork, household, user):
    """Two accounts and four transactions on consecutive days."""

    a = open_account(uow, household, user, "Checking", "1000")
    b = open_account(uow, household, user, "Savings", "0")
    txs = [
        api.record_transaction(
            household, user, tx_payload("income", "500", a.id, transacted_at=_DAY), uow=uow
        ),
        api.record_transaction(
            household,
            user,
            tx_payload("expense", "20", a.id, transacted_at=_DAY + timedelta(days=1)),
            uow=uow,
        ),
        api.record_transaction(
            household,
            user,
            tx_payload("transfer", "100", a.id, b.id, transacted_at=_DAY + timedelta(days=2)),
            uow=uow,
        ),
        api.record_transaction(
            household,
            user,
            tx_payload("expense", "5", b.id, transacted_at=_DAY + timedelta(days=3)),
            uow=uow,
        ),
    ]
    return a, b, txs


def test_record_keeps_fields(uow: UnitOfWork, household, user) -> None:
    a = open_account(uow, household, user, "A", "0")
    tx = api.record_transaction(
        household,
        user,
        tx_payload(
            "income",
            "12.5",
            a.id,
            description="  Salary  ",
            tags=["work", " work ", "", "bonus"],
            note="",
        ),
        uow=uow,
    )
    assert tx.description == "Salary"
    assert tx.tags == ("work", "bonus")
    assert tx.note is None
    assert tx.created_by == user
    assert tx.transacted_at == datetime(2024, 3, 1, 12, 0, tzinfo=UTC)

    fetched = api.get_transaction(tx.id, household, uow=uow)
    assert fetched == tx


def test_transacted_at_is_normalized_to_utc(uow: UnitOfWork, household, user) -> None:
    a = open_account(uow, household, user, "A", "0")
    kyiv = timezone(timedelta(hours=3))
    tx = api.record_transaction(
        household,
        user,
        tx_payload("income", "1", a.id, transacted_at=datetime(2024, 6, 1, 1, 0, tzinfo=kyiv)),
        uow=uow,
    )
    assert tx.transacted_at == datetime(2024, 5, 31, 22, 0, tzinfo=UTC)
    assert tx.transacted_at.tzinfo == UTC


def test_transacted_at_defaults_to_now(uow: UnitOfWork, household, user) -> None:
    a = open_account(uow, household, user, "A", "0")
    payload = tx_payload("income", "1", a.id)
    del payload["transacted_at"]
    before = datetime.now(UTC)
    tx = api.record_transaction(household, user, payload, uow=uow)
    assert before <= tx.transacted_at <= datetime.now(UTC)


def test_list_is_newest_first(uow: UnitOfWork, household, ledger) -> None:
    _a, _b, txs = ledger
    page = api.list_transactions(household, uow=uow)
    assert [t.id for t in page.items] == [t.id for t in reversed(txs)]
    assert page.total == 4
    assert (page.limit, page.offset) == (api.DEFAULT_PAGE_SIZE, 0)


def test_list_pagination(uow: UnitOfWork, household, ledger) -> None:
    _a, _b, txs = ledger
    page = api.list_transactions(household, limit=2, offset=1, uow=uow)
    assert [t.id for t in page.items] == [txs[2].id, txs[1].id]
    assert page.total == 4


def test_list_limit_bounds(uow: UnitOfWork, household, ledger) -> None:
    assert api.list_transactions(household, limit=0, uow=uow).limit == api.DEFAULT_PAGE_SIZE
    assert api.list_transactions(household, limit=10_000, uow=uow).limit == api.MAX_PAGE_SIZE
    with pytest.raises(InvalidInput):
        api.list_transactions(household, offset=-1, uow=uow)


def test_filter_by_date_range_is_inclusive(uow: UnitOfWork, household, ledger) -> None:
    _a, _b, txs = ledger
    page = api.list_transactions(
        household,
        {"from": _DAY + timedelta(days=1), "to": _DAY + timedelta(days=2)},
        uow=uow,
    )
    assert {t.id for t in page.items} == {txs[1].id, txs[2].id}
    assert page.total == 2


def test_filter_by_kind(uow: UnitOfWork, household, ledger) -> None:
    _a, _b, txs = ledger
    page = api.list_transactions(household, TransactionFilters(kind=TransactionKind.EXPENSE), uow=uow)
    assert {t.id for t in page.items} == {txs[1].id, txs[3].id}


def test_filter_by_account_matches_source_or_destination(uow: UnitOfWork, household, ledger) -> None:
    _a, b, txs = ledger
    page = api.list_transactions(household, {"account_id": b.id}, uow=uow)
    assert {t.id for t in page.items} == {txs[2].id, txs[3].id}


def test_filter_rejects_unknown_keys(uow: UnitOfWork, household) -> None:
    with pytest.raises(InvalidInput):
        api.list_transactions(household, {"category": "food"}, uow=uow)


def test_list_is_household_scoped(uow: UnitOfWork, household, ledger) -> None:
    assert api.list_transactions(uuid.uuid4(), uow=uow).total == 0


def test_update_replaces_descriptive_fields(uow: UnitOfWork, household, user, ledger) -> None:
    a, _b, txs = ledger
    original = txs[1]
    updated = api.update_transaction(
        original.id,
        household,
        user,
        tx_payload(
            "expense",
            "20",
            a.id,
            description="Groceries",
            tags=["food"],
            note="weekly",
            transacted_at=_DAY,
        ),
        uow=uow,
    )
    assert updated.id == original.id
    assert (updated.description, updated.tags, updated.note) == ("Groceries", ("food",), "weekly")
    assert updated.transacted_at == _DAY
    assert updated.created_at == original.created_at
    assert updated.created_by == original.created_by
