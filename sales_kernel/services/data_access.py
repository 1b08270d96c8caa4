"""
OrderDataGateway -- the kernel's single persistence seam.

Responsibility:
    Loads and stores sales orders, work orders, invoices and payments, answers
    the remaining-quantity question and allocates document numbers.  Every
    service goes through this gateway; none builds its own queries.

Architecture position:
    Kernel > Services -- infrastructure used by the lifecycle services.

Invariants enforced:
    - ``for_update=True`` loads take a row lock (``SELECT ... FOR UPDATE`` on
      PostgreSQL; SQLite transactions already hold the database write lock)
      and refresh the identity map so the caller sees committed state.
    - Remaining quantity counts only issued, part-paid and paid invoices.
      Draft and void invoices hold no quantity.
    - Writes are flushed, never committed.

Failure modes:
    - OrderNotFoundError / InvoiceNotFoundError for unknown ids.
    - InvalidInputError for an unknown order line.
    - ExhaustedSequenceError from number allocation.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from sales_kernel.domain.dtos import InvoiceStatus
from sales_kernel.domain.numbering import MAX_SEQUENCE, DocumentKind
from sales_kernel.exceptions import (
    InvalidInputError,
    InvoiceNotFoundError,
    OrderNotFoundError,
)
from sales_kernel.logging_config import get_logger
from sales_kernel.models import (
    Invoice,
    InvoiceLine,
    Payment,
    SalesOrder,
    SalesOrderLine,
    WorkOrder,
)
from sales_kernel.services.numbering_service import NumberingService

logger = get_logger("services.data_access")

QUANTITY_CONSUMING_STATUSES = (
    InvoiceStatus.ISSUED.value,
    InvoiceStatus.PART_PAID.value,
    InvoiceStatus.PAID.value,
)


class OrderDataGateway:
    """Request/response persistence interface used by the kernel services."""

    def __init__(self, session: Session, max_sequence: int = MAX_SEQUENCE):
        self._session = session
        self._numbering = NumberingService(session, max_value=max_sequence)

    @property
    def numbering(self) -> NumberingService:
        return self._numbering

    # Sales orders

    def get_order(self, order_id: UUID, for_update: bool = False) -> SalesOrder:
        stmt = select(SalesOrder).where(SalesOrder.id == order_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        order = self._session.execute(stmt).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def save_order(self, order: SalesOrder) -> SalesOrder:
        self._session.add(order)
        self._session.flush()
        return order

    def get_order_line(self, order_id: UUID, line_index: int) -> SalesOrderLine:
        line = self._session.execute(
            select(SalesOrderLine).where(
                SalesOrderLine.sales_order_id == order_id,
                SalesOrderLine.line_index == line_index,
            )
        ).scalar_one_or_none()
        if line is None:
            raise InvalidInputError(
                "line_index", line_index, f"order {order_id} has no such line"
            )
        return line

    def get_invoiced_qty(self, order_id: UUID, line_index: int) -> int:
        """Quantity of one order line already on issued invoices."""
        invoiced = self._session.execute(
            select(func.coalesce(func.sum(InvoiceLine.quantity), 0))
            .join(Invoice, InvoiceLine.invoice_id == Invoice.id)
            .where(
                Invoice.sales_order_id == order_id,
                Invoice.status.in_(QUANTITY_CONSUMING_STATUSES),
                InvoiceLine.line_index == line_index,
            )
        ).scalar_one()
        return int(invoiced)

    def get_line_remaining_qty(self, order_id: UUID, line_index: int) -> int:
        """Ordered quantity minus quantity on issued invoices."""
        line = self.get_order_line(order_id, line_index)
        return line.quantity - self.get_invoiced_qty(order_id, line_index)

    # Work orders

    def create_work_order(self, work_order: WorkOrder) -> WorkOrder:
        self._session.add(work_order)
        self._session.flush()
        return work_order

    def get_work_orders_for_order(self, order_id: UUID) -> list[WorkOrder]:
        return list(
            self._session.execute(
                select(WorkOrder)
                .where(WorkOrder.sales_order_id == order_id)
                .order_by(WorkOrder.line_index)
            ).scalars()
        )

    # Invoices

    def create_invoice(self, invoice: Invoice) -> Invoice:
        self._session.add(invoice)
        self._session.flush()
        return invoice

    def save_invoice(self, invoice: Invoice) -> Invoice:
        self._session.add(invoice)
        self._session.flush()
        return invoice

    def get_invoice(self, invoice_id: UUID, for_update: bool = False) -> Invoice:
        stmt = select(Invoice).where(Invoice.id == invoice_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        invoice = self._session.execute(stmt).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_invoices_for_order(self, order_id: UUID) -> list[Invoice]:
        return list(
            self._session.execute(
                select(Invoice)
                .where(Invoice.sales_order_id == order_id)
                .order_by(Invoice.invoice_number)
            ).scalars()
        )

    # Payments

    def list_payments_for_invoice(self, invoice_id: UUID) -> list[Payment]:
        return list(
            self._session.execute(
                select(Payment)
                .where(Payment.invoice_id == invoice_id)
                .order_by(Payment.recorded_at, Payment.ledger_position)
            ).scalars()
        )

    def create_payment(self, payment: Payment) -> Payment:
        self._session.add(payment)
        self._session.flush()
        return payment

    # Numbering

    def allocate_number(self, kind: DocumentKind, year: int | None) -> str:
        number = self._numbering.next_number(kind, year)
        logger.info(
            "document_number_allocated",
            extra={"kind": kind.value, "year": year, "number": number},
        )
        return number
