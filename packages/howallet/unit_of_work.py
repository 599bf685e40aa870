"""All-or-nothing execution boundary over the ledger stores.

``UnitOfWork.run_atomically(fn)`` opens one session (one database
transaction) via :func:`db.client.session_scope`, hands ``fn`` a
:class:`Stores` bundle bound to that session, and commits when ``fn``
returns. Any exception rolls the whole transaction back:

- ``LedgerError`` subclasses (validation, not-found, conflict) propagate
  unchanged;
- SQLAlchemy errors are re-raised as :class:`~howallet.errors.StorageError`
  (chained), so callers can tell "bad input" from "backend failed".

Store handles must not escape the closure; they are dead once the session is
closed.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from db.client import session_scope
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from .accounts import AccountStore
from .errors import LedgerError, StorageError
from .logging_setup import get_logger
from .transactions import TransactionStore

T = TypeVar("T")

# Pause before each retry of a transient failure (seconds, +/- jitter).
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.05, 0.2, 0.5)
_JITTER_PCT: float = 0.20

_logger = get_logger("howallet.unit_of_work")


@dataclass(frozen=True, slots=True)
class Stores:
    """Store handles bound to the active transaction."""

    session: Session
    accounts: AccountStore
    transactions: TransactionStore


class UnitOfWork:
    """Factory for atomic units of work against one database.

    Parameters
    ----------
    database_url:
        Passed to :func:`db.client.session_scope`; ``None`` uses
        ``DATABASE_URL`` from the environment.
    statement_timeout_ms:
        On PostgreSQL, issued as ``SET LOCAL statement_timeout`` at the start
        of every unit of work so a stuck statement aborts (and rolls back)
        instead of holding row locks indefinitely. Ignored elsewhere.
    retries:
        Default number of extra attempts after a transient
        ``OperationalError`` (lock timeout, serialization failure, SQLite
        "database is locked"). Domain errors are never retried.
    """

    def __init__(
        self,
        *,
        database_url: str | None = None,
        statement_timeout_ms: int | None = None,
        retries: int = 0,
    ) -> None:
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.database_url = database_url
        self.statement_timeout_ms = statement_timeout_ms
        self.retries = retries

    def _apply_timeout(self, session: Session) -> None:
        if not self.statement_timeout_ms:
            return
        if session.get_bind().dialect.name != "postgresql":
            return
        # SET LOCAL does not accept bind parameters; the value is an int.
        session.execute(text(f"SET LOCAL statement_timeout = {int(self.statement_timeout_ms)}"))

    def _run_once(self, fn: Callable[[Stores], T]) -> T:
        try:
            with session_scope(database_url=self.database_url) as session:
                self._apply_timeout(session)
                stores = Stores(
                    session=session,
                    accounts=AccountStore(session),
                    transactions=TransactionStore(session),
                )
                return fn(stores)
        except LedgerError as e:
            _logger.debug("unit of work rolled back: %s", e)
            raise
        except SQLAlchemyError as e:
            _logger.warning("unit of work rolled back on storage error: %s", e.__class__.__name__)
            raise StorageError(f"storage failure: {e.__class__.__name__}: {e}") from e

    def run_atomically(self, fn: Callable[[Stores], T], *, retries: int | None = None) -> T:
        """Run ``fn`` inside one transaction and return its result.

        Either everything ``fn`` did is committed, or nothing is.
        """

        extra = self.retries if retries is None else retries
        attempt = 0
        while True:
            try:
                return self._run_once(fn)
            except StorageError as e:
                transient = isinstance(e.__cause__, OperationalError)
                if not transient or attempt >= extra:
                    raise
                base = _BACKOFF_SCHEDULE_SEC[min(attempt, len(_BACKOFF_SCHEDULE_SEC) - 1)]
                delay = base * (1 + random.uniform(-_JITTER_PCT, _JITTER_PCT))
                attempt += 1
                _logger.warning(
                    "retrying unit of work after transient error (attempt %d/%d, %.2fs)",
                    attempt,
                    extra,
                    delay,
                )
                time.sleep(delay)


__all__ = ["Stores", "UnitOfWork"]
