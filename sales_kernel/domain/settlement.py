"""
Settlement -- invoice status and balance as a pure function of payments.

Responsibility:
    Derives paid amount, balance and committed status from an invoice total
    and its full payment history, and derives the ``overdue`` display state
    from a committed status, due date and an as-of date.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by the
    payment ledger after every append and by the invoice selector on read.

Invariants enforced:
    - Status is recomputed from the whole history, never incrementally.
    - The running balance never drops below zero when payments are applied
      in (recorded_at, ledger_position) order.
    - ``overdue`` is never stored.  It applies only to issued/part_paid
      invoices whose due date has passed and whose balance is positive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Iterable

from sales_kernel.domain.dtos import InvoiceStatus
from sales_kernel.exceptions import InvalidInputError

OVERDUE = "overdue"

_ZERO = Decimal("0")
_SETTLEABLE = (InvoiceStatus.ISSUED, InvoiceStatus.PART_PAID, InvoiceStatus.PAID)


@dataclass(frozen=True, slots=True)
class PaymentEntry:
    """The parts of a payment that settlement depends on."""

    amount: Decimal
    recorded_at: datetime
    ledger_position: int


@dataclass(frozen=True, slots=True)
class Settlement:
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus


def ledger_order(entry: PaymentEntry) -> tuple[datetime, int]:
    """Sort key for payments.  Naive timestamps (SQLite) are read as UTC."""
    recorded_at = entry.recorded_at
    if recorded_at.tzinfo is None:
        recorded_at = recorded_at.replace(tzinfo=UTC)
    return recorded_at, entry.ledger_position


def derive_settlement(
    total: Decimal,
    payments: Iterable[PaymentEntry],
    current_status: InvoiceStatus,
) -> Settlement:
    """
    Recompute paid amount, balance and status from the payment history.

    Draft and void invoices keep their status; they never carry payments.
    A settled invoice is ``paid`` when its balance is zero, ``part_paid``
    when something was paid and ``issued`` when nothing was.

    Raises:
        InvalidInputError: If the history over-pays the invoice or contains a
            non-positive amount.
    """
    ordered = sorted(payments, key=ledger_order)

    paid = _ZERO
    for entry in ordered:
        if entry.amount <= _ZERO:
            raise InvalidInputError("payment.amount", entry.amount, "must be positive")
        paid += entry.amount
        if paid > total:
            raise InvalidInputError(
                "payment.amount", entry.amount, f"history exceeds invoice total {total}"
            )

    balance = total - paid

    if current_status not in _SETTLEABLE:
        return Settlement(paid_amount=paid, balance=balance, status=current_status)

    if balance == _ZERO:
        status = InvoiceStatus.PAID
    elif paid > _ZERO:
        status = InvoiceStatus.PART_PAID
    else:
        status = InvoiceStatus.ISSUED
    return Settlement(paid_amount=paid, balance=balance, status=status)


def is_overdue(
    status: InvoiceStatus,
    due_date: date | None,
    balance: Decimal,
    as_of: date,
) -> bool:
    if status not in (InvoiceStatus.ISSUED, InvoiceStatus.PART_PAID):
        return False
    if due_date is None:
        return False
    return as_of > due_date and balance > _ZERO


def display_status(
    status: InvoiceStatus,
    due_date: date | None,
    balance: Decimal,
    as_of: date,
) -> str:
    """Committed status, or ``overdue`` when the due date has passed unpaid."""
    if is_overdue(status, due_date, balance, as_of):
        return OVERDUE
    return status.value


def days_overdue(
    status: InvoiceStatus,
    due_date: date | None,
    balance: Decimal,
    as_of: date,
) -> int:
    """Whole days past the due date; 0 unless the invoice is overdue."""
    if not is_overdue(status, due_date, balance, as_of):
        return 0
    return (as_of - due_date).days
