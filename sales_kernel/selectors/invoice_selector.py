"""
InvoiceSelector -- read views of invoices with derived overdue state.

Every view is computed against an ``as_of`` date (the clock's today by
default), so the same committed invoice reads as ``issued`` today and
``overdue`` a month later without any write.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from sales_kernel.domain.dtos import InvoiceStatus, InvoiceView
from sales_kernel.exceptions import InvoiceNotFoundError
from sales_kernel.models import Invoice
from sales_kernel.selectors.base import BaseSelector

_OPEN_STATUSES = (InvoiceStatus.ISSUED.value, InvoiceStatus.PART_PAID.value)


class InvoiceSelector(BaseSelector):
    """Invoice queries."""

    def get(self, invoice_id: UUID, as_of: date | None = None) -> InvoiceView:
        invoice = self.session.get(Invoice, invoice_id)
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice.to_dto(as_of or self.clock.today())

    def get_by_number(self, invoice_number: str, as_of: date | None = None) -> InvoiceView:
        invoice = self.session.execute(
            select(Invoice).where(Invoice.invoice_number == invoice_number)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(invoice_number)
        return invoice.to_dto(as_of or self.clock.today())

    def for_order(self, order_id: UUID, as_of: date | None = None) -> list[InvoiceView]:
        as_of = as_of or self.clock.today()
        invoices = self.session.execute(
            select(Invoice)
            .where(Invoice.sales_order_id == order_id)
            .order_by(Invoice.invoice_number)
        ).scalars()
        return [invoice.to_dto(as_of) for invoice in invoices]

    def list_overdue(self, as_of: date | None = None) -> list[InvoiceView]:
        """Open invoices past their due date, oldest due date first."""
        as_of = as_of or self.clock.today()
        invoices = self.session.execute(
            select(Invoice)
            .where(
                Invoice.status.in_(_OPEN_STATUSES),
                Invoice.due_date < as_of,
                Invoice.balance > 0,
            )
            .order_by(Invoice.due_date, Invoice.invoice_number)
        ).scalars()
        return [invoice.to_dto(as_of) for invoice in invoices]
