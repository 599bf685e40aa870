"""Pytest configuration for test isolation.

Every test that touches the database gets its own file-backed SQLite database
under ``tmp_path``. The shared engine in :mod:`db.client` is a process-wide
singleton guarded against URL changes, so it is disposed before and after
each test; otherwise a later test would be refused (or, worse, reuse an
earlier test's file).

``HOWALLET_*`` variables from the developer's shell are cleared so config
defaults are what the tests see.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Iterator
from pathlib import Path

import pytest

from db.client import dispose_engine
from howallet.unit_of_work import UnitOfWork
from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(os.environ):
        if name.startswith("HOWALLET_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def database_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[str]:
    """Per-test SQLite URL with the ledger schema created; also exported as DATABASE_URL."""

    dispose_engine()
    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite3")
    monkeypatch.setenv("DATABASE_URL", url)
    yield url
    dispose_engine()


@pytest.fixture
def uow(database_url: str) -> UnitOfWork:
    return UnitOfWork(database_url=database_url)


@pytest.fixture
def household() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def user() -> uuid.UUID:
    return uuid.uuid4()
