"""Smallest charge the payment gateway accepts per currency, in major units."""

from decimal import ROUND_HALF_UP, Decimal

MINIMUM_CHARGE = {
    "USD": Decimal("0.50"),
    "EUR": Decimal("0.50"),
    "GBP": Decimal("0.30"),
    "AUD": Decimal("0.50"),
    "CAD": Decimal("0.50"),
    "CHF": Decimal("0.50"),
    "NZD": Decimal("0.50"),
    "SGD": Decimal("0.50"),
    "BRL": Decimal("0.50"),
    "DKK": Decimal("2.50"),
    "NOK": Decimal("3.00"),
    "SEK": Decimal("3.00"),
    "PLN": Decimal("2.00"),
    "HKD": Decimal("4.00"),
    "MXN": Decimal("10.00"),
    "JPY": Decimal("50"),
}

ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})

# Used for currencies missing from the table
DEFAULT_MINIMUM = Decimal("0.50")


def minimum_charge(currency: str) -> Decimal:
    return MINIMUM_CHARGE.get(currency.upper(), DEFAULT_MINIMUM)


def meets_minimum(amount: float | Decimal, currency: str) -> bool:
    return Decimal(str(amount)) >= minimum_charge(currency)


def to_minor_units(amount: float | Decimal, currency: str) -> int:
    """Convert a major-unit amount to the integer the gateway expects (cents)."""
    value = Decimal(str(amount))
    if currency.upper() not in ZERO_DECIMAL_CURRENCIES:
        value = value * 100
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int, currency: str) -> float:
    """Inverse of :func:`to_minor_units` for amounts reported by the gateway."""
    value = Decimal(int(amount))
    if currency.upper() not in ZERO_DECIMAL_CURRENCIES:
        value = value / 100
    return float(value)
