"""
Currency Display Module

ISO 4217 currency codes with precision and symbol, plus helpers for
rounding and displaying Decimal amounts. The currency is always passed
explicitly; nothing here depends on process-wide locale state.
NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP
from enum import Enum


class Currency(Enum):
    """ISO 4217 Currency Codes with precision and display symbol"""
    USD = ("USD", 2, "$")     # US Dollar, 2 decimal places
    EUR = ("EUR", 2, "€")     # Euro, 2 decimal places
    GBP = ("GBP", 2, "£")     # British Pound, 2 decimal places
    JPY = ("JPY", 0, "¥")     # Japanese Yen, 0 decimal places
    BYN = ("BYN", 2, "Br")    # Belarusian Ruble, 2 decimal places

    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by its ISO code (case-insensitive)"""
        for currency in cls:
            if currency.code == code.upper():
                return currency
        raise ValueError(f"Unknown currency code: {code}")


def quantize(amount: Decimal, currency: Currency) -> Decimal:
    """
    Round a decimal to currency precision

    Args:
        amount: Decimal to round
        currency: Currency defining precision

    Returns:
        Properly rounded Decimal
    """
    return amount.quantize(
        Decimal('0.1') ** currency.precision,
        rounding=ROUND_HALF_UP
    )


def format_money(amount: Decimal, currency: Currency, use_symbol: bool = True) -> str:
    """Format an amount for display, e.g. ``$1,234.50`` or ``USD 1,234.50``"""
    rounded = quantize(amount, currency)
    sign = "-" if rounded < 0 else ""
    digits = f"{abs(rounded):,.{currency.precision}f}"
    if use_symbol:
        return f"{sign}{currency.symbol}{digits}"
    return f"{sign}{currency.code} {digits}"
