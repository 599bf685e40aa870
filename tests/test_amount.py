from __future__ import annotations

from decimal import Decimal

import pytest

from howallet.amount import Amount
from howallet.errors import InvalidAmount, ValidationError


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("12.50", Decimal("12.5")),
        (" 100 ", Decimal("100")),
        ("-3", Decimal("-3")),
        ("0.0001", Decimal("0.0001")),
        ("1e2", Decimal("100")),
        (".25", Decimal("0.25")),
        ("+7.", Decimal("7")),
    ],
)
def test_parse_accepts_plain_decimals(raw: str, expected: Decimal) -> None:
    assert Amount.parse(raw).value == expected


@pytest.mark.parametrize(
    "raw",
    ["", "   ", "abc", "12,50", "NaN", "Infinity", "0.00001", "1_000", "١٢", "５０", "1.2.3", "+"],
)
def test_parse_rejects_malformed(raw: str) -> None:
    with pytest.raises(InvalidAmount):
        Amount.parse(raw)


def test_parse_rejects_out_of_range() -> None:
    with pytest.raises(InvalidAmount, match="out of range"):
        Amount.parse("1" + "0" * 15)


def test_parse_rejects_non_string() -> None:
    with pytest.raises(InvalidAmount):
        Amount.parse(12.5)  # type: ignore[arg-type]


@pytest.mark.parametrize("raw", ["0", "0.00", "-1"])
def test_parse_positive_requires_greater_than_zero(raw: str) -> None:
    with pytest.raises(InvalidAmount, match="greater than zero"):
        Amount.parse_positive(raw)


def test_invalid_amount_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        Amount.parse("x")
    assert issubclass(InvalidAmount, ValidationError)


def test_constructor_rejects_floats() -> None:
    with pytest.raises(TypeError):
        Amount(0.1)  # type: ignore[arg-type]


def test_arithmetic_is_exact() -> None:
    total = Amount.parse("0.1") + Amount.parse("0.2")
    assert total == Amount.parse("0.3")
    assert Amount.parse("1") - Amount.parse("1.25") == Amount.parse("-0.25")


def test_negation_and_zero() -> None:
    a = Amount.parse("40")
    assert -(-a) == a
    assert a + (-a) == Amount.zero()
    # Negated zero renders without a sign.
    assert (-Amount.zero()).to_fixed(2) == "0.00"


def test_to_fixed_rounds_half_up() -> None:
    assert Amount.parse("2.005").to_fixed(2) == "2.01"
    assert Amount.parse("-2.005").to_fixed(2) == "-2.01"
    assert Amount.parse("150").to_fixed(2) == "150.00"
    assert str(Amount.parse("1.5")) == "1.5000"


def test_ordering() -> None:
    assert Amount.parse("1") < Amount.parse("1.01")
    assert max(Amount.parse("-5"), Amount.parse("3")) == Amount.parse("3")
