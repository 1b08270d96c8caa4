"""
Module: sales_kernel.db.types
Responsibility: Annotated type aliases and utility functions for money columns.
    Centralizes precision, rounding and currency validation so that every model
    and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.

Invariants enforced:
    - ISO 4217 enforcement: validate_currency() rejects unknown codes.
    - round_money() is the ONLY sanctioned rounding function (ROUND_HALF_UP
      to the currency's minor unit).
    - No floats.  All monetary amounts use Decimal.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from sqlalchemy import Numeric, String

from sales_kernel.exceptions import InvalidInputError

# Finest scale a stored amount, price, tax percent or weight can carry
STORED_DECIMAL_SCALE = 9

# Monetary amount, 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, STORED_DECIMAL_SCALE)]

# ISO 4217 currency code (e.g., "INR", "USD")
Currency = Annotated[str, String(3)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Minor unit used for invoice and order totals
MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    This is the ONLY sanctioned rounding function for money in the kernel.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    exponent = Decimal(1).scaleb(-decimal_places)
    return value.quantize(exponent, rounding=rounding)


# ISO 4217 Currency Codes
ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "AFN", "ALL", "AMD", "ANG", "AOA", "ARS", "AWG", "AZN",
    "BAM", "BBD", "BDT", "BGN", "BHD", "BIF", "BMD", "BND", "BOB", "BRL", "BSD", "BTN", "BWP", "BYN", "BZD",
    "CDF", "CLP", "CNY", "COP", "CRC", "CUP", "CVE", "CZK",
    "DJF", "DKK", "DOP", "DZD",
    "EGP", "ERN", "ETB",
    "FJD", "FKP",
    "GEL", "GHS", "GIP", "GMD", "GNF", "GTQ", "GYD",
    "HKD", "HNL", "HTG", "HUF",
    "IDR", "ILS", "INR", "IQD", "IRR", "ISK",
    "JMD", "JOD",
    "KES", "KGS", "KHR", "KMF", "KPW", "KRW", "KWD", "KYD", "KZT",
    "LAK", "LBP", "LKR", "LRD", "LSL", "LYD",
    "MAD", "MDL", "MGA", "MKD", "MMK", "MNT", "MOP", "MRU", "MUR", "MVR", "MWK", "MXN", "MYR", "MZN",
    "NAD", "NGN", "NIO", "NOK", "NPR",
    "OMR",
    "PAB", "PEN", "PGK", "PHP", "PKR", "PLN", "PYG",
    "QAR",
    "RON", "RSD", "RUB", "RWF",
    "SAR", "SBD", "SCR", "SDG", "SEK", "SGD", "SHP", "SLE", "SOS", "SRD", "SSP", "STN", "SVC", "SYP", "SZL",
    "THB", "TJS", "TMT", "TND", "TOP", "TRY", "TTD", "TWD", "TZS",
    "UAH", "UGX", "UYU", "UZS",
    "VES", "VND", "VUV",
    "WST",
    "XAF", "XCD", "XOF", "XPF",
    "YER",
    "ZAR", "ZMW", "ZWL",
})

# Currencies whose minor unit is not 2 decimal places
_MINOR_UNIT_OVERRIDES: dict[str, int] = {
    "BIF": 0, "CLP": 0, "DJF": 0, "GNF": 0, "ISK": 0, "JPY": 0, "KMF": 0,
    "KRW": 0, "PYG": 0, "RWF": 0, "UGX": 0, "VND": 0, "VUV": 0, "XAF": 0,
    "XOF": 0, "XPF": 0,
    "BHD": 3, "IQD": 3, "JOD": 3, "KWD": 3, "LYD": 3, "OMR": 3, "TND": 3,
}


def validate_currency(currency: str) -> str:
    """
    Validate that a currency code is a known ISO 4217 code.

    Returns:
        The validated currency code (uppercase, trimmed).

    Raises:
        InvalidInputError: If the currency code is not valid.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidInputError("currency", currency, "currency code is required")

    normalized = currency.upper().strip()
    if normalized not in ISO_4217_CURRENCIES:
        raise InvalidInputError("currency", currency, "not an ISO 4217 currency code")
    return normalized


def currency_decimal_places(currency: str) -> int:
    """Minor unit of a currency (2 unless listed otherwise)."""
    return _MINOR_UNIT_OVERRIDES.get(currency.upper(), MONEY_DECIMAL_PLACES)
