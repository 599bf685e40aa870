from __future__ import annotations

import csv
import io
import json
import uuid
from pathlib import Path

import pytest
from typer.testing import CliRunner

from db.client import dispose_engine
from howallet.cli import app

runner = CliRunner()


@pytest.fixture
def cli(database_url: str, household: uuid.UUID, user: uuid.UUID):
    """Invoke the app against the per-test database; returns ``(exit_code, stdout, output)``."""

    def _invoke(*args: str, with_user: bool = False):
        group, *rest = args
        ids = ["--household", str(household)]
        if with_user:
            ids += ["--user", str(user)]
        argv = ["--database-url", database_url, *group.split(), *ids, *rest]
        result = runner.invoke(app, argv)
        return result.exit_code, result.stdout, result.output

    return _invoke


def _create_account(cli, name: str, balance: str = "0") -> dict:
    code, out, output = cli(
        "accounts create", "--name", name, "--balance", balance, with_user=True
    )
    assert code == 0, output
    return json.loads(out)


def test_accounts_create_and_show(cli) -> None:
    created = _create_account(cli, "Checking", "100")
    assert created["name"] == "Checking"
    assert created["kind"] == "card"
    assert created["balance"] == "100.00"
    assert created["currency"] == "USD"

    code, out, _ = cli("accounts show", created["id"])
    assert code == 0
    assert json.loads(out)["id"] == created["id"]


def test_accounts_list_and_update(cli) -> None:
    a = _create_account(cli, "A")
    _create_account(cli, "B")
    code, out, _ = cli("accounts list")
    assert code == 0
    assert [json.loads(line)["name"] for line in out.splitlines()] == ["A", "B"]

    code, out, _ = cli("accounts update", a["id"], "--name", "Cash box", "--type", "cash")
    assert code == 0
    assert (json.loads(out)["name"], json.loads(out)["kind"]) == ("Cash box", "cash")


def test_transaction_lifecycle(cli) -> None:
    a = _create_account(cli, "A", "100")
    b = _create_account(cli, "B", "0")

    code, out, output = cli(
        "tx add",
        "--type", "transfer",
        "--description", "Move",
        "--amount", "40",
        "--account", a["id"],
        "--destination", b["id"],
        "--tag", "savings",
        "--at", "2024-03-01T10:00:00",
        with_user=True,
    )
    assert code == 0, output
    tx = json.loads(out)
    assert tx["tags"] == ["savings"]
    assert tx["amount"] == "40.00"

    _, out, _ = cli("accounts show", a["id"])
    assert json.loads(out)["balance"] == "60.00"

    code, out, output = cli(
        "tx update",
        tx["id"],
        "--type", "transfer",
        "--description", "Move",
        "--amount", "10",
        "--account", a["id"],
        "--destination", b["id"],
        with_user=True,
    )
    assert code == 0, output
    _, out, _ = cli("accounts show", b["id"])
    assert json.loads(out)["balance"] == "10.00"

    code, out, _ = cli("tx list", "--type", "transfer")
    assert code == 0
    page = json.loads(out)
    assert page["total"] == 1
    assert page["items"][0]["id"] == tx["id"]

    code, _, _ = cli("tx delete", tx["id"])
    assert code == 0
    _, out, _ = cli("accounts show", a["id"])
    assert json.loads(out)["balance"] == "100.00"

    code, out, _ = cli("verify")
    assert (code, out.strip()) == (0, "ok")


def test_validation_error_exit_code(cli) -> None:
    a = _create_account(cli, "A", "100")
    code, _, output = cli(
        "tx add",
        "--type", "transfer",
        "--description", "Nowhere",
        "--amount", "5",
        "--account", a["id"],
        with_user=True,
    )
    assert code == 2
    assert "transfer requires destination_account_id" in output


def test_bad_amount_exit_code(cli) -> None:
    a = _create_account(cli, "A", "100")
    code, _, output = cli(
        "tx add",
        "--type", "expense",
        "--description", "Oops",
        "--amount", "-5",
        "--account", a["id"],
        with_user=True,
    )
    assert code == 2
    assert "greater than zero" in output


def test_not_found_and_conflict_exit_codes(cli) -> None:
    code, _, output = cli("accounts show", str(uuid.uuid4()))
    assert code == 1
    assert "account not found" in output

    a = _create_account(cli, "A", "100")
    code, _, _ = cli(
        "tx add",
        "--type", "expense",
        "--description", "Lunch",
        "--amount", "12",
        "--account", a["id"],
        with_user=True,
    )
    assert code == 0
    code, _, output = cli("accounts delete", a["id"])
    assert code == 1
    assert "account has transactions" in output


def test_export_to_stdout_and_file(cli, tmp_path: Path) -> None:
    a = _create_account(cli, "Checking", "100")
    cli(
        "tx add",
        "--type", "income",
        "--description", "Salary",
        "--amount", "1000",
        "--account", a["id"],
        "--at", "2024-01-31T09:00:00",
        with_user=True,
    )

    code, out, _ = cli("export")
    assert code == 0
    rows = list(csv.reader(io.StringIO(out)))
    assert rows[0][:3] == ["Date", "Description", "Amount"]
    assert rows[1] == ["2024-01-31", "Salary", "1000.00", "Checking", "", "income", "cleared", "USD"]

    target = tmp_path / "out.csv"
    code, _, output = cli("export", "--output", str(target))
    assert code == 0
    assert "wrote 1 rows" in output
    assert target.read_text(encoding="utf-8").splitlines()[1].startswith("2024-01-31,Salary")


def test_init_db_creates_schema(tmp_path: Path, household: uuid.UUID) -> None:
    dispose_engine()
    url = f"sqlite+pysqlite:///{tmp_path / 'fresh.sqlite3'}"
    result = runner.invoke(app, ["--database-url", url, "init-db"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(app, ["--database-url", url, "accounts", "list", "--household", str(household)])
    assert result.exit_code == 0, result.output
    assert result.stdout == ""
    dispose_engine()
