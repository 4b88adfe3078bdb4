"""Major/minor currency unit conversion."""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# ISO 4217 currencies without a minor unit; everything else uses 2 decimals.
ZERO_DECIMAL_CURRENCIES = frozenset({"ISK", "JPY", "KRW", "CLP", "VND", "XAF", "XOF", "UGX", "RWF"})


def currency_exponent(currency: str) -> int:
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def to_minor_units(amount: Decimal | int | float | str, currency: str) -> int:
    """Convert a major-unit amount to an integer count of minor units.

    >>> to_minor_units(Decimal("10.00"), "GHS")
    1000
    """
    value = Decimal(str(amount)) * (Decimal(10) ** currency_exponent(currency))
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))
