"""
Unit tests for settlement and overdue derivation.

Verifies:
- Status is a pure function of (total, payment history)
- Payment ordering by (recorded_at, ledger_position)
- Overdue derivation boundaries
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from sales_kernel.domain.dtos import InvoiceStatus
from sales_kernel.domain.settlement import (
    OVERDUE,
    PaymentEntry,
    days_overdue,
    derive_settlement,
    display_status,
    is_overdue,
    ledger_order,
)
from sales_kernel.exceptions import InvalidInputError

T0 = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)
TOTAL = Decimal("59000.00")


def entry(amount: str, position: int, minutes: int = 0) -> PaymentEntry:
    return PaymentEntry(
        amount=Decimal(amount),
        recorded_at=T0 + timedelta(minutes=minutes),
        ledger_position=position,
    )


class TestDeriveSettlement:

    def test_no_payments_is_issued(self):
        s = derive_settlement(TOTAL, [], InvoiceStatus.ISSUED)
        assert s.status == InvoiceStatus.ISSUED
        assert s.balance == TOTAL
        assert s.paid_amount == Decimal("0")

    def test_part_payment(self):
        s = derive_settlement(TOTAL, [entry("30000", 1)], InvoiceStatus.ISSUED)
        assert s.status == InvoiceStatus.PART_PAID
        assert s.balance == Decimal("29000.00")

    def test_full_payment(self):
        s = derive_settlement(
            TOTAL, [entry("30000", 1), entry("29000", 2, 5)], InvoiceStatus.PART_PAID
        )
        assert s.status == InvoiceStatus.PAID
        assert s.balance == Decimal("0")
        assert s.paid_amount == TOTAL

    def test_zero_total_is_paid(self):
        s = derive_settlement(Decimal("0.00"), [], InvoiceStatus.ISSUED)
        assert s.status == InvoiceStatus.PAID

    def test_over_payment_rejected(self):
        with pytest.raises(InvalidInputError):
            derive_settlement(TOTAL, [entry("59000.01", 1)], InvoiceStatus.ISSUED)

    def test_non_positive_entry_rejected(self):
        with pytest.raises(InvalidInputError):
            derive_settlement(TOTAL, [entry("0", 1)], InvoiceStatus.ISSUED)

    @pytest.mark.parametrize("status", [InvoiceStatus.DRAFT, InvoiceStatus.VOID])
    def test_unsettled_statuses_kept(self, status):
        s = derive_settlement(TOTAL, [], status)
        assert s.status == status

    def test_history_order_does_not_change_result(self):
        history = [entry("10000", 1), entry("20000", 2, 1), entry("29000", 3, 2)]
        forward = derive_settlement(TOTAL, history, InvoiceStatus.ISSUED)
        backward = derive_settlement(TOTAL, list(reversed(history)), InvoiceStatus.ISSUED)
        assert forward == backward


class TestLedgerOrder:

    def test_position_breaks_timestamp_ties(self):
        a, b = entry("1", 2), entry("1", 1)
        assert sorted([a, b], key=ledger_order) == [b, a]

    def test_naive_timestamps_read_as_utc(self):
        naive = PaymentEntry(Decimal("1"), T0.replace(tzinfo=None) + timedelta(minutes=1), 1)
        aware = entry("1", 2)
        assert sorted([naive, aware], key=ledger_order) == [aware, naive]


class TestOverdue:

    DUE = date(2025, 2, 14)

    def test_not_overdue_on_due_date(self):
        assert not is_overdue(InvoiceStatus.ISSUED, self.DUE, TOTAL, self.DUE)
        assert display_status(InvoiceStatus.ISSUED, self.DUE, TOTAL, self.DUE) == "issued"

    def test_overdue_day_after(self):
        as_of = self.DUE + timedelta(days=1)
        assert display_status(InvoiceStatus.ISSUED, self.DUE, TOTAL, as_of) == OVERDUE
        assert days_overdue(InvoiceStatus.ISSUED, self.DUE, TOTAL, as_of) == 1

    def test_part_paid_can_be_overdue(self):
        as_of = self.DUE + timedelta(days=10)
        assert display_status(InvoiceStatus.PART_PAID, self.DUE, Decimal("1"), as_of) == OVERDUE
        assert days_overdue(InvoiceStatus.PART_PAID, self.DUE, Decimal("1"), as_of) == 10

    @pytest.mark.parametrize("status", [InvoiceStatus.PAID, InvoiceStatus.DRAFT, InvoiceStatus.VOID])
    def test_closed_statuses_never_overdue(self, status):
        as_of = self.DUE + timedelta(days=90)
        assert display_status(status, self.DUE, TOTAL, as_of) == status.value
        assert days_overdue(status, self.DUE, TOTAL, as_of) == 0

    def test_zero_balance_never_overdue(self):
        as_of = self.DUE + timedelta(days=5)
        assert not is_overdue(InvoiceStatus.ISSUED, self.DUE, Decimal("0"), as_of)

    def test_missing_due_date(self):
        assert not is_overdue(InvoiceStatus.ISSUED, None, TOTAL, self.DUE)
