"""CLI for the ``howallet`` package.

A Typer console app over :mod:`howallet.api`. Environment variables
(notably ``DATABASE_URL``) are loaded from a local ``.env`` using
``python-dotenv`` before any command runs. Household and user ids are passed
explicitly (``--household``/``--user``); authentication is the concern of
whatever deploys this tool.

Exit codes
----------
- ``0`` success
- ``1`` not found / account still referenced
- ``2`` invalid input (amount, kind, missing transfer destination...)
- ``3`` storage failure (nothing was committed; safe to retry)
"""

from __future__ import annotations

import json
import sys
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import fields, is_dataclass
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any

import typer

from . import api
from .amount import Amount
from .config import Settings, load_settings
from .errors import HasTransactions, LedgerError, NotFound, StorageError, ValidationError
from .logging_setup import configure_logging
from .models import AccountKind, TransactionKind
from .unit_of_work import UnitOfWork

app = typer.Typer(
    help="Household ledger: accounts, transactions and Buxfer CSV export.",
    no_args_is_help=True,
    add_completion=False,
)
accounts_app = typer.Typer(help="Manage accounts.", no_args_is_help=True)
tx_app = typer.Typer(help="Record and edit transactions.", no_args_is_help=True)
app.add_typer(accounts_app, name="accounts")
app.add_typer(tx_app, name="tx")

HouseholdOpt = Annotated[uuid.UUID, typer.Option("--household", help="Active household id.")]
UserOpt = Annotated[uuid.UUID, typer.Option("--user", help="Acting user id.")]


# ---- Small module-level helpers used by CLI commands -------------------------


def _jsonable(value: Any) -> Any:
    if isinstance(value, Amount):
        return value.to_fixed(2)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, tuple | list):
        return [_jsonable(v) for v in value]
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: _jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, AccountKind | TransactionKind):
        return value.value
    return value


def _emit(value: Any) -> None:
    typer.echo(json.dumps(_jsonable(value), ensure_ascii=False))


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Translate ledger errors into a stderr message and a distinct exit code."""

    try:
        yield
    except ValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(2) from e
    except (NotFound, HasTransactions) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    except StorageError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(3) from e
    except LedgerError as e:  # pragma: no cover - no other subclasses today
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def _uow(ctx: typer.Context) -> UnitOfWork:
    return ctx.obj["uow"]


def _run(ctx: typer.Context, fn: Callable[[UnitOfWork], Any]) -> Any:
    with _handle_errors():
        return fn(_uow(ctx))


def _tx_payload(
    *,
    kind: TransactionKind,
    description: str,
    amount: str,
    account: uuid.UUID,
    destination: uuid.UUID | None,
    tags: list[str] | None,
    note: str | None,
    at: datetime | None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "type": kind.value,
        "description": description,
        "amount": amount,
        "account_id": account,
        "destination_account_id": destination,
        "tags": tags or [],
        "note": note,
    }
    if at is not None:
        payload["transacted_at"] = at
    return payload


# ---- Root -------------------------------------------------------------------


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    database_url: Annotated[
        str | None, typer.Option(help="Override DATABASE_URL (falls back to env var).")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option(help="Log level (defaults to HOWALLET_LOG_LEVEL or INFO).")
    ] = None,
    sql_echo: Annotated[bool, typer.Option(help="Log every SQL statement.")] = False,
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables), configures logging, and prepares the
    unit of work shared by the subcommand.
    """

    settings: Settings = load_settings(dotenv_path=Path.cwd() / ".env")
    configure_logging(log_level or settings.log_level, sql_echo=sql_echo)
    ctx.obj = {
        "settings": settings,
        "uow": UnitOfWork(
            database_url=database_url or settings.database_url,
            statement_timeout_ms=settings.statement_timeout_ms,
            retries=settings.tx_retries,
        ),
    }


@app.command("init-db")
def init_db_cmd(ctx: typer.Context) -> None:
    """Create the ledger tables directly from the ORM metadata.

    Intended for local development and tests; deployed databases are
    migrated with Alembic (``libs/db/alembic``).
    """

    from db import metadata
    from db.client import get_engine

    uow = _uow(ctx)
    with _handle_errors():
        engine = get_engine(database_url=uow.database_url)
        metadata.create_all(bind=engine)
    typer.echo("ok")


# ---- Accounts ---------------------------------------------------------------


@accounts_app.command("create")
def accounts_create_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    user: UserOpt,
    name: Annotated[str, typer.Option(help="Display name.")],
    kind: Annotated[AccountKind, typer.Option("--type", help="Account kind.")] = AccountKind.CARD,
    balance: Annotated[str, typer.Option(help="Opening balance, e.g. 100.00")] = "0",
    currency: Annotated[str | None, typer.Option(help="3-letter currency code.")] = None,
) -> None:
    settings: Settings = ctx.obj["settings"]
    data = {
        "name": name,
        "type": kind.value,
        "balance": balance,
        "currency": currency or settings.default_currency,
    }
    _emit(_run(ctx, lambda uow: api.open_account(household, user, data, uow=uow)))


@accounts_app.command("list")
def accounts_list_cmd(ctx: typer.Context, household: HouseholdOpt) -> None:
    for account in _run(ctx, lambda uow: api.list_accounts(household, uow=uow)):
        _emit(account)


@accounts_app.command("show")
def accounts_show_cmd(
    ctx: typer.Context, household: HouseholdOpt, account_id: Annotated[uuid.UUID, typer.Argument()]
) -> None:
    _emit(_run(ctx, lambda uow: api.get_account(account_id, household, uow=uow)))


@accounts_app.command("update")
def accounts_update_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    account_id: Annotated[uuid.UUID, typer.Argument()],
    name: Annotated[str | None, typer.Option()] = None,
    kind: Annotated[AccountKind | None, typer.Option("--type")] = None,
    currency: Annotated[str | None, typer.Option()] = None,
) -> None:
    data = {"name": name, "type": kind.value if kind else None, "currency": currency}
    _emit(_run(ctx, lambda uow: api.update_account(account_id, household, data, uow=uow)))


@accounts_app.command("delete")
def accounts_delete_cmd(
    ctx: typer.Context, household: HouseholdOpt, account_id: Annotated[uuid.UUID, typer.Argument()]
) -> None:
    _run(ctx, lambda uow: api.delete_account(account_id, household, uow=uow))
    typer.echo("deleted")


# ---- Transactions -----------------------------------------------------------


@tx_app.command("add")
def tx_add_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    user: UserOpt,
    kind: Annotated[TransactionKind, typer.Option("--type")],
    description: Annotated[str, typer.Option()],
    amount: Annotated[str, typer.Option(help="Positive decimal, e.g. 12.50")],
    account: Annotated[uuid.UUID, typer.Option(help="Source account id.")],
    destination: Annotated[
        uuid.UUID | None, typer.Option(help="Destination account id (transfers only).")
    ] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag", help="Repeatable.")] = None,
    note: Annotated[str | None, typer.Option()] = None,
    at: Annotated[datetime | None, typer.Option(help="Transacted at (ISO-8601).")] = None,
) -> None:
    data = _tx_payload(
        kind=kind,
        description=description,
        amount=amount,
        account=account,
        destination=destination,
        tags=tag,
        note=note,
        at=at,
    )
    _emit(_run(ctx, lambda uow: api.record_transaction(household, user, data, uow=uow)))


@tx_app.command("update")
def tx_update_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    user: UserOpt,
    tx_id: Annotated[uuid.UUID, typer.Argument()],
    kind: Annotated[TransactionKind, typer.Option("--type")],
    description: Annotated[str, typer.Option()],
    amount: Annotated[str, typer.Option()],
    account: Annotated[uuid.UUID, typer.Option()],
    destination: Annotated[uuid.UUID | None, typer.Option()] = None,
    tag: Annotated[list[str] | None, typer.Option("--tag")] = None,
    note: Annotated[str | None, typer.Option()] = None,
    at: Annotated[datetime | None, typer.Option()] = None,
) -> None:
    """Replace every field of a transaction (balances are re-derived)."""

    data = _tx_payload(
        kind=kind,
        description=description,
        amount=amount,
        account=account,
        destination=destination,
        tags=tag,
        note=note,
        at=at,
    )
    _emit(_run(ctx, lambda uow: api.update_transaction(tx_id, household, user, data, uow=uow)))


@tx_app.command("show")
def tx_show_cmd(
    ctx: typer.Context, household: HouseholdOpt, tx_id: Annotated[uuid.UUID, typer.Argument()]
) -> None:
    _emit(_run(ctx, lambda uow: api.get_transaction(tx_id, household, uow=uow)))


@tx_app.command("list")
def tx_list_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    date_from: Annotated[datetime | None, typer.Option("--from")] = None,
    date_to: Annotated[datetime | None, typer.Option("--to")] = None,
    kind: Annotated[TransactionKind | None, typer.Option("--type")] = None,
    account: Annotated[uuid.UUID | None, typer.Option()] = None,
    limit: Annotated[int, typer.Option()] = api.DEFAULT_PAGE_SIZE,
    offset: Annotated[int, typer.Option()] = 0,
) -> None:
    filters = {"from": date_from, "to": date_to, "type": kind, "account_id": account}
    page = _run(
        ctx,
        lambda uow: api.list_transactions(
            household, filters, limit=limit, offset=offset, uow=uow
        ),
    )
    _emit(page)


@tx_app.command("delete")
def tx_delete_cmd(
    ctx: typer.Context, household: HouseholdOpt, tx_id: Annotated[uuid.UUID, typer.Argument()]
) -> None:
    _run(ctx, lambda uow: api.delete_transaction(tx_id, household, uow=uow))
    typer.echo("deleted")


# ---- Export / audit ---------------------------------------------------------


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    household: HouseholdOpt,
    date_from: Annotated[datetime | None, typer.Option("--from")] = None,
    date_to: Annotated[datetime | None, typer.Option("--to")] = None,
    output: Annotated[
        Path | None, typer.Option(help="Write to this file instead of stdout.", dir_okay=False)
    ] = None,
) -> None:
    """Export transactions as Buxfer-compatible CSV."""

    def _export(uow: UnitOfWork) -> int:
        if output is None:
            return api.export_transactions_csv(
                household, sys.stdout, date_from=date_from, date_to=date_to, uow=uow
            )
        with output.open("w", encoding="utf-8", newline="") as f:
            return api.export_transactions_csv(
                household, f, date_from=date_from, date_to=date_to, uow=uow
            )

    count = _run(ctx, _export)
    if output is not None:
        typer.echo(f"wrote {count} rows to {output}", err=True)


@app.command("verify")
def verify_cmd(ctx: typer.Context, household: HouseholdOpt) -> None:
    """Check every balance against opening balance plus transaction deltas."""

    drift = _run(ctx, lambda uow: api.verify_balances(household, uow=uow))
    if not drift:
        typer.echo("ok")
        return
    for d in drift:
        typer.echo(
            f"{d.account_id}: stored={d.stored.to_fixed(2)} expected={d.expected.to_fixed(2)}"
        )
    raise typer.Exit(1)


def main() -> None:  # pragma: no cover - console script entry
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via console script
    # Running as a module: `python -m howallet.cli`
    main()
