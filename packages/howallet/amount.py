"""Exact decimal money amounts.

``Amount`` wraps :class:`decimal.Decimal` so balances and transaction amounts
never touch binary floating point. Values are held at the storage scale
(four fractional digits, matching ``NUMERIC(19, 4)``) and rendered at any
smaller scale with half-up rounding.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .errors import InvalidAmount

STORAGE_PLACES = 4
_STORAGE_QUANTUM = Decimal(1).scaleb(-STORAGE_PLACES)
# NUMERIC(19, 4) leaves 15 digits for the integer part.
_MAX_ABS = Decimal(10) ** 15
# Plain ASCII decimal notation only: no digit separators, no non-ASCII digits,
# no NaN/Infinity.
_DECIMAL_RE = re.compile(r"[+-]?([0-9]+(\.[0-9]*)?|\.[0-9]+)([eE][+-]?[0-9]+)?")


def _to_storage(value: Decimal) -> Decimal:
    q = value.quantize(_STORAGE_QUANTUM, rounding=ROUND_HALF_UP)
    # Fold -0 into 0 so negated zeros render and compare identically.
    return abs(q) if q == 0 else q


@dataclass(frozen=True, slots=True, order=True)
class Amount:
    """A signed exact-decimal quantity of money at storage scale."""

    value: Decimal

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            raise TypeError(f"Amount expects a Decimal, got {type(self.value).__name__}")
        object.__setattr__(self, "value", _to_storage(self.value))

    # ---- construction ---------------------------------------------------

    @classmethod
    def parse(cls, raw: str) -> Amount:
        """Parse a decimal string such as ``"12.50"`` or ``"-3"``.

        Raises :class:`InvalidAmount` for empty, malformed or non-finite
        input, for more fractional digits than the storage scale holds, and
        for magnitudes that do not fit the storage column.
        """

        if not isinstance(raw, str):
            raise InvalidAmount(f"invalid amount: expected a decimal string, got {raw!r}")
        s = raw.strip()
        if not s:
            raise InvalidAmount("invalid amount: empty string")
        if not _DECIMAL_RE.fullmatch(s):
            raise InvalidAmount(f"invalid amount: {raw!r}")
        try:
            d = Decimal(s)
        except InvalidOperation as e:
            raise InvalidAmount(f"invalid amount: {raw!r}") from e
        if abs(d) >= _MAX_ABS:
            raise InvalidAmount(f"invalid amount: {raw!r} is out of range")
        if _to_storage(d) != d:
            raise InvalidAmount(
                f"invalid amount: {raw!r} has more than {STORAGE_PLACES} decimal places"
            )
        return cls(d)

    @classmethod
    def parse_positive(cls, raw: str) -> Amount:
        """Parse like :meth:`parse` and additionally require ``> 0``."""

        amount = cls.parse(raw)
        if not amount.is_positive():
            raise InvalidAmount(f"invalid amount: {raw!r} must be greater than zero")
        return amount

    @classmethod
    def zero(cls) -> Amount:
        return cls(Decimal(0))

    # ---- arithmetic -----------------------------------------------------

    def __neg__(self) -> Amount:
        return Amount(-self.value)

    def __add__(self, other: Amount) -> Amount:
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.value + other.value)

    def __sub__(self, other: Amount) -> Amount:
        if not isinstance(other, Amount):
            return NotImplemented
        return Amount(self.value - other.value)

    def is_positive(self) -> bool:
        return self.value > 0

    # ---- rendering ------------------------------------------------------

    def to_fixed(self, places: int = 2) -> str:
        """Render with exactly ``places`` fractional digits (half-up)."""

        quantum = Decimal(1).scaleb(-places)
        return f"{self.value.quantize(quantum, rounding=ROUND_HALF_UP):f}"

    def __str__(self) -> str:
        return self.to_fixed(STORAGE_PLACES)


__all__ = ["STORAGE_PLACES", "Amount"]
