"""
Monetary precision helpers.

Money is stored as Decimal quantized to the currency's minor unit and compared
in integer minor units, so settlement arithmetic never drifts by a paisa.

Key Principles:
1. NEVER use float for money
2. Always quantize Decimals BEFORE converting to minor units
3. Use ROUND_HALF_EVEN (banker's rounding) to prevent systematic bias
"""

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Iterable, Union

Amount = Union[Decimal, str, int, float]

# Currency minor unit exponents (how many decimal places)
CURRENCY_EXPONENT = {
    "INR": 2,  # Indian Rupee (paise)
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "AED": 2,
    "SGD": 2,
    "JPY": 0,  # no subunit
    "KRW": 0,
    "VND": 0,
    "KWD": 3,  # fils
    "BHD": 3,
    "OMR": 3,
}

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def currency_exponent(currency: str) -> int:
    """
    Number of decimal places for a currency; unknown codes default to 2.

    >>> currency_exponent("INR")
    2
    >>> currency_exponent("JPY")
    0
    """
    return CURRENCY_EXPONENT.get(currency.upper(), 2)


def quantize_decimal(currency: str) -> Decimal:
    """Smallest unit as a Decimal, e.g. Decimal('0.01') for INR."""
    return Decimal(10) ** -currency_exponent(currency)


def to_decimal(amount: Amount) -> Decimal:
    if isinstance(amount, float):
        # Convert float to string first to avoid binary representation noise
        amount = str(amount)
    try:
        return Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"'{amount}' is not a valid monetary amount")


def quantize(currency: str, amount: Amount) -> Decimal:
    """
    Round to currency decimals using banker's rounding.

    >>> quantize("INR", "10.125")
    Decimal('10.12')
    >>> quantize("JPY", "1234.56")
    Decimal('1235')
    """
    return to_decimal(amount).quantize(quantize_decimal(currency), rounding=ROUND_HALF_EVEN)


def to_minor(currency: str, amount: Amount) -> int:
    """
    Convert to integer minor units after quantization.

    >>> to_minor("INR", "10.127")
    1013
    """
    quantized = quantize(currency, amount)
    return int((quantized * (10 ** currency_exponent(currency))).to_integral_value())


def from_minor(currency: str, minor: int) -> Decimal:
    """
    >>> from_minor("INR", 1013)
    Decimal('10.13')
    """
    return quantize(currency, Decimal(minor) / (10 ** currency_exponent(currency)))


def sum_minor(currency: str, amounts: Iterable[Amount]) -> int:
    """Sum of amounts, each quantized first, in minor units."""
    return sum(to_minor(currency, amount) for amount in amounts)


def within_tolerance(expected_minor: int, actual_minor: int, tolerance_minor: int) -> bool:
    return abs(actual_minor - expected_minor) <= tolerance_minor


def format_money(currency: str, minor: int) -> str:
    """
    Human-readable amount for logs and error messages.

    >>> format_money("INR", 105050)
    '₹1,050.50'
    """
    amount = from_minor(currency, minor)
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper() + " ")
    exponent = currency_exponent(currency)
    return f"{symbol}{amount:,.{exponent}f}"
