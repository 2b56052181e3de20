"""Minor/major currency unit handling."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

__all__ = [
    "ZERO_DECIMAL_CURRENCIES",
    "minor_unit_divisor",
    "parse_major_amount",
    "round_major",
    "to_major_units",
]

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def minor_unit_divisor(currency: str) -> int:
    return 1 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 100


def round_major(value: float) -> float:
    """Round a major-unit amount to cents, half away from zero."""

    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_major_units(amount_minor: int, currency: str) -> float:
    """Convert an integer minor-unit amount to a rounded major-unit amount."""

    return round_major(amount_minor / minor_unit_divisor(currency))


def parse_major_amount(value: str | None, currency: str) -> int:
    """Return the minor-unit integer for a decimal string such as ``"12.34"``.

    Unparseable or negative amounts count as zero.
    """

    if value is None:
        return 0
    try:
        amount = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        return 0
    if not amount.is_finite() or amount < 0:
        return 0
    minor = (amount * minor_unit_divisor(currency)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(minor)
