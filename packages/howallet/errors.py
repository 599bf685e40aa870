"""Error taxonomy for ``howallet``.

Three families, distinguishable by callers:

- :class:`ValidationError` (a ``ValueError``): bad input, detected before any
  mutation. Safe to report back verbatim.
- :class:`NotFound` / :class:`HasTransactions`: well-formed requests that
  cannot be honored in the current state.
- :class:`StorageError`: the backend failed inside a unit of work. Everything
  was rolled back; the operation may be retried.

Each class carries an HTTP-like ``status`` so an outer request layer can map
errors without a lookup table.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all errors raised by ``howallet``."""

    status: int = 500


# ---------------------------
# Validation (4xx)
# ---------------------------


class ValidationError(LedgerError, ValueError):
    status = 400


class InvalidAmount(ValidationError):
    """Amount string is malformed, non-finite, out of range or not positive."""


class TransferMissingDestination(ValidationError):
    def __init__(self, message: str = "transfer requires destination_account_id") -> None:
        super().__init__(message)


class DestinationNotAllowed(ValidationError):
    def __init__(self, kind: str) -> None:
        super().__init__(f"destination_account_id is only allowed for transfers, not {kind!r}")
        self.kind = kind


class SameAccountTransfer(ValidationError):
    def __init__(self, message: str = "transfer source and destination must differ") -> None:
        super().__init__(message)


class InvalidInput(ValidationError):
    """Any other malformed field (kind, currency, name, tags, dates)."""


# ---------------------------
# State (404 / 409)
# ---------------------------


class NotFound(LedgerError):
    """Record absent, or owned by another household (indistinguishable)."""

    status = 404

    def __init__(self, entity: str, record_id: object) -> None:
        super().__init__(f"{entity} not found: {record_id}")
        self.entity = entity
        self.record_id = record_id


class HasTransactions(LedgerError):
    status = 409

    def __init__(self, account_id: object, count: int | None = None) -> None:
        detail = f" ({count} referencing)" if count else ""
        super().__init__(f"account has transactions, cannot delete: {account_id}{detail}")
        self.account_id = account_id
        self.count = count


# ---------------------------
# Backend (5xx)
# ---------------------------


class StorageError(LedgerError):
    """Backend failure inside a unit of work; nothing was committed."""

    status = 500


__all__ = [
    "DestinationNotAllowed",
    "HasTransactions",
    "InvalidAmount",
    "InvalidInput",
    "LedgerError",
    "NotFound",
    "SameAccountTransfer",
    "StorageError",
    "TransferMissingDestination",
    "ValidationError",
]
