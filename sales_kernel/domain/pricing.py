"""
Pricing -- line and order totals with tax.

Responsibility:
    Computes subtotal, tax amount and grand total for sales orders and
    invoices from (quantity, price-per-unit) pairs and a tax percentage.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by the order
    and invoice services and by ORM ``totals()`` helpers.

Invariants enforced:
    - total == subtotal + tax_amount, exactly.
    - Line products are summed unrounded; the subtotal is rounded once to
      the currency minor unit, and tax is ROUND_HALF_UP of
      subtotal * tax_percent / 100.
    - Prices, tax percents and weights carry at most 9 decimal places, the
      scale they are stored at, so totals recomputed after a reload match.
    - Referential transparency: identical inputs always yield identical
      Totals, regardless of line order.

Failure modes:
    - InvalidInputError for quantity <= 0, non-integer quantity, negative or
      float price, or tax percent outside [0, 100].
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable

from sales_kernel.db.types import MONEY_DECIMAL_PLACES, STORED_DECIMAL_SCALE, round_money
from sales_kernel.exceptions import InvalidInputError

_HUNDRED = Decimal("100")
_STORED_INTEGER_DIGITS = 38 - STORED_DECIMAL_SCALE


@dataclass(frozen=True, slots=True)
class PricedLine:
    """A quantity at a unit price."""

    quantity: int
    price_per_unit: Decimal


@dataclass(frozen=True, slots=True)
class Totals:
    """Computed monetary totals for an order or invoice."""

    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal


def validate_quantity(quantity: object, field: str = "quantity") -> int:
    """Quantities are positive whole numbers of pieces."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidInputError(field, quantity, "quantity must be an integer")
    if quantity <= 0:
        raise InvalidInputError(field, quantity, "quantity must be positive")
    return quantity


def to_decimal(value: object, field: str) -> Decimal:
    """Convert str/int/Decimal to Decimal.  Floats are rejected."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInputError(field, value, "use Decimal or str, never float")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidInputError(field, value, "not a number") from exc
    else:
        raise InvalidInputError(field, value, f"unsupported type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidInputError(field, value, "must be finite")
    if result and result.normalize().as_tuple().exponent < -STORED_DECIMAL_SCALE:
        raise InvalidInputError(
            field, value, f"at most {STORED_DECIMAL_SCALE} decimal places can be stored"
        )
    if result.adjusted() >= _STORED_INTEGER_DIGITS:
        raise InvalidInputError(field, value, "too large to store")
    return result


def validate_price(price: object, field: str = "price_per_unit") -> Decimal:
    result = to_decimal(price, field)
    if result < 0:
        raise InvalidInputError(field, price, "price must not be negative")
    return result


def validate_tax_percent(tax_percent: object) -> Decimal:
    result = to_decimal(tax_percent, "tax_percent")
    if result < 0 or result > _HUNDRED:
        raise InvalidInputError("tax_percent", tax_percent, "must be between 0 and 100")
    return result


def compute_line_amount(
    quantity: int,
    price_per_unit: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Decimal:
    """quantity x price, rounded for display."""
    qty = validate_quantity(quantity)
    price = validate_price(price_per_unit)
    return round_money(qty * price, decimal_places)


def compute_totals(
    lines: Iterable[PricedLine | tuple[int, Decimal]],
    tax_percent: Decimal | str | int,
    decimal_places: int = MONEY_DECIMAL_PLACES,
) -> Totals:
    """
    Compute subtotal, tax and total for a sequence of priced lines.

    Preconditions:
        - Every quantity is a positive int and every price a non-negative
          Decimal (or str/int convertible to one).
        - 0 <= tax_percent <= 100.

    Postconditions:
        - total == subtotal + tax_amount.
        - subtotal and tax_amount are rounded to ``decimal_places``.

    Raises:
        InvalidInputError: On any invalid quantity, price or tax percent.
    """
    pct = validate_tax_percent(tax_percent)

    gross = Decimal("0")
    for index, line in enumerate(lines):
        if isinstance(line, PricedLine):
            quantity, price = line.quantity, line.price_per_unit
        else:
            quantity, price = line
        qty = validate_quantity(quantity, f"lines[{index}].quantity")
        unit = validate_price(price, f"lines[{index}].price_per_unit")
        gross += qty * unit

    subtotal = round_money(gross, decimal_places)
    tax_amount = round_money(subtotal * pct / _HUNDRED, decimal_places)
    return Totals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total=subtotal + tax_amount,
    )
