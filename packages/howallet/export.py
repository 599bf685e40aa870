"""CSV export in the Buxfer-compatible layout.

Header (exact order)::

    Date,Description,Amount,Account,Tags,Type,Status,Currency

Mapping rules:
- ``Date``: ``transacted_at`` as ``YYYY-MM-DD`` (UTC)
- ``Amount``: signed, two decimals; expenses negative, income positive
- transfers produce two rows: the outgoing leg (negative, source account)
  followed by the incoming leg (positive, destination account)
- ``Tags``: joined with ``", "``
- ``Status``: always ``cleared``
- ``Currency``: the source account's currency, on both transfer legs
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Iterator
from typing import IO

from .models import ExportRow, TransactionKind

HEADER: tuple[str, ...] = (
    "Date",
    "Description",
    "Amount",
    "Account",
    "Tags",
    "Type",
    "Status",
    "Currency",
)
_STATUS = "cleared"


def to_csv_rows(row: ExportRow) -> list[list[str]]:
    """Expand one export row into its CSV line(s)."""

    date_s = row.transacted_at.date().isoformat()
    tags_s = ", ".join(row.tags)
    kind = row.kind.value

    def _line(amount: str, account: str) -> list[str]:
        return [date_s, row.description, amount, account, tags_s, kind, _STATUS, row.account_currency]

    if row.kind is TransactionKind.TRANSFER:
        return [
            _line((-row.amount).to_fixed(2), row.account_name),
            _line(row.amount.to_fixed(2), row.destination_account_name or ""),
        ]
    signed = -row.amount if row.kind is TransactionKind.EXPENSE else row.amount
    return [_line(signed.to_fixed(2), row.account_name)]


def iter_csv_rows(rows: Iterable[ExportRow]) -> Iterator[list[str]]:
    yield list(HEADER)
    for row in rows:
        yield from to_csv_rows(row)


def write_transactions_csv(rows: Iterable[ExportRow], stream: IO[str]) -> int:
    """Write the header plus all rows to ``stream``; return the data line count."""

    writer = csv.writer(stream, lineterminator="\n")
    written = -1
    for line in iter_csv_rows(rows):
        writer.writerow(line)
        written += 1
    return written


__all__ = ["HEADER", "iter_csv_rows", "to_csv_rows", "write_transactions_csv"]
