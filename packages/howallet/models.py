"""Domain records and input models for ``howallet``.

Two layers live here:

- Frozen dataclass *records* (:class:`Account`, :class:`Transaction`,
  :class:`ExportRow`, :class:`Page`, :class:`BalanceDrift`) returned by the
  stores and the public API. They are detached from any database session.
- Pydantic *input* models (:class:`AccountCreate`, :class:`AccountUpdate`,
  :class:`TransactionInput`, :class:`TransactionFilters`) describing what
  callers send in. Field names follow the JSON wire format (``type``,
  ``account_id``, ``transacted_at``...).
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .amount import Amount
from .errors import InvalidInput

# ---------------------------------------------------------------------------
# Kinds
# ---------------------------------------------------------------------------


class AccountKind(StrEnum):
    CARD = "card"
    DEPOSIT = "deposit"
    CASH = "cash"


class TransactionKind(StrEnum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


DEFAULT_CURRENCY = "USD"
MAX_DESCRIPTION_LEN = 512
MAX_TAG_LEN = 64

_CURRENCY_RE = re.compile(r"^[A-Z]{3}$")


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def normalize_currency(raw: str) -> str:
    code = raw.strip().upper()
    if not _CURRENCY_RE.match(code):
        raise ValueError(f"currency must be a 3-letter code, got {raw!r}")
    return code


def normalize_tags(raw: list[str] | tuple[str, ...] | None) -> list[str]:
    """Trim, drop empties and de-duplicate tags, keeping first-seen order."""

    out: list[str] = []
    seen: set[str] = set()
    for tag in raw or ():
        s = " ".join(str(tag).split())
        if not s:
            continue
        if len(s) > MAX_TAG_LEN:
            raise ValueError(f"tag longer than {MAX_TAG_LEN} characters: {s[:16]!r}...")
        if s in seen:
            continue
        seen.add(s)
        out.append(s)
    return out


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Account:
    id: uuid.UUID
    household_id: uuid.UUID
    name: str
    kind: AccountKind
    balance: Amount
    opening_balance: Amount
    currency: str
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class Transaction:
    """A recorded income, expense or transfer.

    ``amount`` is always the positive magnitude; the direction comes from
    ``kind`` (see :func:`howallet.ledger.deltas`).
    """

    id: uuid.UUID
    household_id: uuid.UUID
    kind: TransactionKind
    description: str
    amount: Amount
    account_id: uuid.UUID
    destination_account_id: uuid.UUID | None
    tags: tuple[str, ...]
    note: str | None
    transacted_at: datetime
    created_by: uuid.UUID
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True, slots=True)
class ExportRow:
    """A transaction joined with the account names needed for CSV export."""

    transacted_at: datetime
    description: str
    amount: Amount
    kind: TransactionKind
    tags: tuple[str, ...]
    note: str | None
    account_name: str
    account_currency: str
    destination_account_name: str | None = None


@dataclass(frozen=True, slots=True)
class Page:
    items: list[Transaction]
    total: int
    limit: int
    offset: int


@dataclass(frozen=True, slots=True)
class BalanceDrift:
    """An account whose stored balance disagrees with its transaction history."""

    account_id: uuid.UUID
    stored: Amount
    expected: Amount

    @property
    def difference(self) -> Amount:
        return self.stored - self.expected


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class AccountCreate(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    name: str = Field(min_length=1, max_length=255)
    kind: AccountKind = Field(default=AccountKind.CARD, alias="type")
    balance: str = "0"
    currency: str = DEFAULT_CURRENCY

    @field_validator("balance", mode="before")
    @classmethod
    def _balance_as_string(cls, v: Any) -> Any:
        # Decimal/int are exact; floats are not accepted.
        if isinstance(v, Decimal | int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        return normalize_currency(v)


class AccountUpdate(BaseModel):
    """Partial account update. Balance is deliberately not a field."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    kind: AccountKind | None = Field(default=None, alias="type")
    currency: str | None = None

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str | None) -> str | None:
        return None if v is None else normalize_currency(v)


class TransactionInput(BaseModel):
    """Create/update payload for a transaction.

    ``amount`` stays a string here; the ledger engine parses it with
    :meth:`Amount.parse_positive` so amount errors surface as
    :class:`~howallet.errors.InvalidAmount`.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True, populate_by_name=True)

    kind: TransactionKind = Field(alias="type")
    description: str = Field(min_length=1, max_length=MAX_DESCRIPTION_LEN)
    amount: str
    account_id: uuid.UUID
    destination_account_id: uuid.UUID | None = None
    tags: list[str] = Field(default_factory=list)
    note: str | None = None
    transacted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("amount", mode="before")
    @classmethod
    def _amount_as_string(cls, v: Any) -> Any:
        if isinstance(v, Decimal | int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str]) -> list[str]:
        return normalize_tags(v)

    @field_validator("note")
    @classmethod
    def _blank_note_is_none(cls, v: str | None) -> str | None:
        return v or None

    @field_validator("transacted_at")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TransactionFilters(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    date_from: datetime | None = Field(default=None, alias="from")
    date_to: datetime | None = Field(default=None, alias="to")
    kind: TransactionKind | None = Field(default=None, alias="type")
    account_id: uuid.UUID | None = None

    @field_validator("date_from", "date_to")
    @classmethod
    def _utc(cls, v: datetime | None) -> datetime | None:
        return None if v is None else as_utc(v)


M = TypeVar("M", bound=BaseModel)


def build_input(model: type[M], data: Mapping[str, Any]) -> M:
    """Validate ``data`` into ``model``, reporting failures as ``InvalidInput``."""

    try:
        return model.model_validate(dict(data))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or model.__name__}: {err['msg']}"
            for err in e.errors()
        )
        raise InvalidInput(problems) from e


__all__ = [
    "DEFAULT_CURRENCY",
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
    "as_utc",
    "build_input",
    "normalize_currency",
    "normalize_tags",
]
