"""Public interface for the ``howallet`` package.

This module exposes the package's API functions, the ledger engine, and the
public models/errors as the stable import surface. There is no runtime logic
here, only symbol re-exports.
"""

from .amount import Amount
from .api import (
    delete_account,
    delete_transaction,
    export_transactions_csv,
    get_account,
    get_transaction,
    list_accounts,
    list_transactions,
    open_account,
    record_transaction,
    update_account,
    update_transaction,
    verify_balances,
)
from .errors import (
    DestinationNotAllowed,
    HasTransactions,
    InvalidAmount,
    InvalidInput,
    LedgerError,
    NotFound,
    SameAccountTransfer,
    StorageError,
    TransferMissingDestination,
    ValidationError,
)
from .ledger import LedgerEngine, deltas, reverse
from .models import (
    Account,
    AccountCreate,
    AccountKind,
    AccountUpdate,
    BalanceDrift,
    ExportRow,
    Page,
    Transaction,
    TransactionFilters,
    TransactionInput,
    TransactionKind,
)
from .unit_of_work import Stores, UnitOfWork

__all__ = [
    # API
    "open_account",
    "get_account",
    "list_accounts",
    "update_account",
    "delete_account",
    "record_transaction",
    "get_transaction",
    "list_transactions",
    "update_transaction",
    "delete_transaction",
    "export_transactions_csv",
    "verify_balances",
    # Engine
    "LedgerEngine",
    "UnitOfWork",
    "Stores",
    "deltas",
    "reverse",
    # Models / types
    "Amount",
    "Account",
    "AccountCreate",
    "AccountKind",
    "AccountUpdate",
    "BalanceDrift",
    "ExportRow",
    "Page",
    "Transaction",
    "TransactionFilters",
    "TransactionInput",
    "TransactionKind",
    # Errors
    "LedgerError",
    "ValidationError",
    "InvalidAmount",
    "InvalidInput",
    "TransferMissingDestination",
    "DestinationNotAllowed",
    "SameAccountTransfer",
    "NotFound",
    "HasTransactions",
    "StorageError",
]
