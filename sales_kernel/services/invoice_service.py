"""
InvoiceService -- draft, issue and void invoices against approved orders.

Responsibility:
    Bills quantities of approved sales order lines.  A draft gets its number
    and totals at creation; issuing re-checks the remaining quantity, fixes
    the issue and due dates and makes the invoice payable.  Voiding releases
    the quantity of an invoice that never received money.

Architecture position:
    Kernel > Services.  ``part_paid`` and ``paid`` are reached only through
    PaymentLedger; this service never sets them except to settle a
    zero-total invoice on issue.

Invariants enforced:
    - Per order line, the quantity on issued invoices never exceeds the
      ordered quantity.  The check runs on draft creation and again, under
      the order row lock, on issue.
    - Invoice totals use the order's tax percent and the pricing engine.
    - due_date = issue_date + payment_terms_days, fixed at issue.
    - Numbers are never reused; a voided invoice keeps its number.

Failure modes:
    - InvalidTransitionError: order not approved, or illegal invoice edge.
    - OverInvoicedError: quantity exceeds what is left to bill.
    - InvalidInputError: unknown/duplicate line, bad quantity.
    - ExhaustedSequenceError from INV numbering.
"""

from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sales_kernel.db.types import round_money
from sales_kernel.domain.dtos import (
    InvoiceLineRequest,
    InvoiceStatus,
    InvoiceView,
    SalesOrderStatus,
)
from sales_kernel.domain.numbering import DocumentKind
from sales_kernel.domain.pricing import PricedLine, compute_totals, validate_quantity
from sales_kernel.domain.settlement import derive_settlement
from sales_kernel.domain.workflow import INVOICE_WORKFLOW
from sales_kernel.exceptions import (
    InvalidInputError,
    InvalidTransitionError,
    OverInvoicedError,
    SalesKernelError,
)
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.models import Invoice, InvoiceLine, SalesOrder
from sales_kernel.services.base import BaseService

logger = get_logger("services.invoice")


def _coerce_request(raw: InvoiceLineRequest | tuple[int, int], position: int) -> InvoiceLineRequest:
    if isinstance(raw, InvoiceLineRequest):
        request = raw
    elif isinstance(raw, tuple) and len(raw) == 2:
        request = InvoiceLineRequest(line_index=raw[0], quantity=raw[1])
    else:
        raise InvalidInputError(f"lines[{position}]", raw, "expected (line_index, quantity)")
    if isinstance(request.line_index, bool) or not isinstance(request.line_index, int):
        raise InvalidInputError(f"lines[{position}].line_index", request.line_index, "must be an integer")
    validate_quantity(request.quantity, f"lines[{position}].quantity")
    return request


class InvoiceService(BaseService):
    """Creates, issues and voids invoices."""

    def create_draft(
        self,
        order_id: UUID,
        lines: Sequence[InvoiceLineRequest | tuple[int, int]],
        actor_id: UUID,
    ) -> InvoiceView:
        """
        Create a draft invoice for part or all of an approved order.

        The invoice number is allocated now, so a draft that is later voided
        leaves a visible gap rather than a reused number.

        Raises:
            InvalidTransitionError: The order is not approved.
            OverInvoicedError: A quantity exceeds the line's remaining quantity.
            InvalidInputError: No lines, a duplicate or unknown line index, or
                a non-positive quantity.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with self.atomic():
                    order = self.gateway.get_order(order_id, for_update=True)
                    self._require_approved(order, "invoice")
                    requests = self._validate_requests(order, lines)

                    invoice_lines = []
                    places = order.decimal_places
                    for request in requests:
                        line = order.line(request.line_index)
                        invoice_lines.append(
                            InvoiceLine(
                                line_index=line.line_index,
                                item_code=line.item_code,
                                quantity=request.quantity,
                                price_per_unit=line.price_per_unit,
                                amount=round_money(request.quantity * line.price_per_unit, places),
                                created_by_id=actor_id,
                            )
                        )

                    totals = compute_totals(
                        [PricedLine(il.quantity, il.price_per_unit) for il in invoice_lines],
                        order.tax_percent,
                        places,
                    )
                    invoice_number = self.gateway.allocate_number(
                        DocumentKind.INVOICE, self._numbering_year()
                    )
                    invoice = Invoice(
                        invoice_number=invoice_number,
                        sales_order_id=order.id,
                        currency=order.currency,
                        tax_percent=order.tax_percent,
                        subtotal=totals.subtotal,
                        tax_amount=totals.tax_amount,
                        total=totals.total,
                        paid_amount=Decimal("0"),
                        balance=totals.total,
                        status=InvoiceStatus.DRAFT,
                        created_by_id=actor_id,
                    )
                    invoice.lines = invoice_lines
                    self.gateway.create_invoice(invoice)
            except SalesKernelError as exc:
                self._log_failure("create_draft", order_id, None, exc)
                raise

            logger.info(
                "invoice_draft_created",
                extra={
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "total": invoice.total,
                },
            )
            return invoice.to_dto(self.clock.today())

    def issue(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        issue_date: date | None = None,
    ) -> InvoiceView:
        """
        Issue a draft invoice.

        Postconditions:
            - status == issued (or paid for a zero-total invoice).
            - due_date == issue_date + the order's payment_terms_days.

        Raises:
            InvalidTransitionError: The invoice is not a draft.
            OverInvoicedError: Another invoice consumed the quantity since the
                draft was created.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            try:
                with self.atomic():
                    invoice = self.gateway.get_invoice(invoice_id, for_update=True)
                    INVOICE_WORKFLOW.require(invoice.id, invoice.status, "issue")

                    # The order lock serializes concurrent issues on one order
                    order = self.gateway.get_order(invoice.sales_order_id, for_update=True)
                    self._require_approved(order, "issue_invoice")
                    for line in invoice.lines:
                        self._check_remaining(order, line.line_index, line.quantity)

                    issued_on = issue_date or self.clock.today()
                    invoice.issue_date = issued_on
                    invoice.due_date = issued_on + timedelta(days=order.payment_terms_days)
                    invoice.status = InvoiceStatus.ISSUED
                    invoice.updated_by_id = actor_id

                    settlement = derive_settlement(invoice.total, [], InvoiceStatus.ISSUED)
                    if settlement.status != InvoiceStatus.ISSUED:
                        INVOICE_WORKFLOW.require(
                            invoice.id, InvoiceStatus.ISSUED, "settle",
                            settlement.status, automatic=True,
                        )
                        invoice.status = settlement.status
                    self.gateway.save_invoice(invoice)
            except SalesKernelError as exc:
                self._log_failure("issue", None, invoice_id, exc)
                raise

            logger.info(
                "invoice_issued",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "issue_date": invoice.issue_date,
                    "due_date": invoice.due_date,
                    "total": invoice.total,
                    "status": invoice.status,
                },
            )
            return invoice.to_dto(self.clock.today())

    def create_and_issue(
        self,
        order_id: UUID,
        lines: Sequence[InvoiceLineRequest | tuple[int, int]],
        actor_id: UUID,
        issue_date: date | None = None,
    ) -> InvoiceView:
        """Create a draft and issue it in one unit of work."""
        with self.atomic():
            draft = self.create_draft(order_id, lines, actor_id)
            return self.issue(draft.id, actor_id, issue_date)

    def void(self, invoice_id: UUID, actor_id: UUID) -> InvoiceView:
        """
        Void a draft, or an issued invoice that has received no payment.

        The quantity it held becomes available again; its number is retired.

        Raises:
            InvalidTransitionError: Paid/part-paid/void invoices, or an issued
                invoice with payments.
        """
        with LogContext.bind(invoice_id=invoice_id, actor_id=actor_id):
            try:
                with self.atomic():
                    invoice = self.gateway.get_invoice(invoice_id, for_update=True)
                    INVOICE_WORKFLOW.require(invoice.id, invoice.status, "void")
                    if self.gateway.list_payments_for_invoice(invoice.id):
                        raise InvalidTransitionError(
                            entity_type=INVOICE_WORKFLOW.name,
                            entity_id=str(invoice.id),
                            from_state=invoice.status,
                            action="void",
                        )
                    invoice.status = InvoiceStatus.VOID
                    invoice.voided_at = self.clock.now()
                    invoice.updated_by_id = actor_id
                    self.gateway.save_invoice(invoice)
            except SalesKernelError as exc:
                self._log_failure("void", None, invoice_id, exc)
                raise

            logger.info(
                "invoice_voided",
                extra={"invoice_number": invoice.invoice_number},
            )
            return invoice.to_dto(self.clock.today())

    def remaining_quantity(self, order_id: UUID, line_index: int) -> int:
        """Quantity of an order line not yet on an issued invoice."""
        return self.gateway.get_line_remaining_qty(order_id, line_index)

    def invoices_for_order(self, order_id: UUID, as_of: date | None = None) -> list[InvoiceView]:
        as_of = as_of or self.clock.today()
        return [inv.to_dto(as_of) for inv in self.gateway.get_invoices_for_order(order_id)]

    # Internal helpers

    def _numbering_year(self) -> int | None:
        if self.config.invoice_numbers_include_year:
            return self.clock.today().year
        return None

    @staticmethod
    def _require_approved(order: SalesOrder, action: str) -> None:
        if order.status != SalesOrderStatus.APPROVED:
            logger.warning(
                "invoice_rejected_order_not_approved",
                extra={"order_status": order.status, "action": action},
            )
            raise InvalidTransitionError(
                entity_type="sales_order",
                entity_id=str(order.id),
                from_state=order.status,
                action=action,
            )

    def _validate_requests(
        self,
        order: SalesOrder,
        lines: Sequence[InvoiceLineRequest | tuple[int, int]],
    ) -> list[InvoiceLineRequest]:
        if not lines:
            raise InvalidInputError("lines", 0, "an invoice needs at least one line")
        requests = [_coerce_request(raw, i) for i, raw in enumerate(lines)]
        seen: set[int] = set()
        for request in requests:
            if request.line_index in seen:
                raise InvalidInputError(
                    "line_index", request.line_index, "line listed more than once"
                )
            seen.add(request.line_index)
            if order.line(request.line_index) is None:
                raise InvalidInputError(
                    "line_index", request.line_index, f"order {order.id} has no such line"
                )
            self._check_remaining(order, request.line_index, request.quantity)
        return sorted(requests, key=lambda r: r.line_index)

    def _check_remaining(self, order: SalesOrder, line_index: int, quantity: int) -> None:
        remaining = self.gateway.get_line_remaining_qty(order.id, line_index)
        if quantity > remaining:
            raise OverInvoicedError(
                order_id=str(order.id),
                line_index=line_index,
                requested=quantity,
                remaining=remaining,
            )

    @staticmethod
    def _log_failure(
        operation: str,
        order_id: UUID | None,
        invoice_id: UUID | None,
        exc: SalesKernelError,
    ) -> None:
        logger.warning(
            "invoice_operation_failed",
            extra={
                "operation": operation,
                "order_id": str(order_id) if order_id is not None else None,
                "invoice_id": str(invoice_id) if invoice_id is not None else None,
                "error_code": exc.code,
                "error": str(exc),
            },
        )
