"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the ledger domain models used by ``howallet``.
"""

from .ledger import Base, LedgerAccount, LedgerTransaction

__all__ = [
    "Base",
    "LedgerAccount",
    "LedgerTransaction",
]
