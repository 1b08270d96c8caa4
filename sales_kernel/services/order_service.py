"""
SalesOrderService -- the sales order lifecycle.

Responsibility:
    Creates draft sales orders, replaces their lines while they are still
    drafts, approves them (deriving work orders in the same unit of work)
    and cancels them.

Architecture position:
    Kernel > Services.  Uses the pure pricing and workflow definitions from
    ``sales_kernel.domain`` and persists through OrderDataGateway.

Invariants enforced:
    - Only the edges of SALES_ORDER_WORKFLOW are taken:
      draft -> draft (edit_lines), draft -> approved, draft -> cancelled.
    - Approval requires at least one valid line.
    - Approval and work order derivation commit together or not at all;
      a failed derivation leaves the order in draft with no work orders.
    - Totals are always recomputed from the lines.

Failure modes:
    - InvalidInputError for malformed header or line data.
    - InvalidTransitionError for any other lifecycle request.
    - OrderNotFoundError for unknown ids.
    - ExhaustedSequenceError from work order numbering (approval rolled back).
"""

from collections.abc import Mapping, Sequence
from decimal import Decimal
from uuid import UUID

from sales_kernel.db.types import validate_currency
from sales_kernel.domain.dtos import (
    LineItemInput,
    SalesOrderStatus,
    SalesOrderView,
    TaxType,
)
from sales_kernel.domain.pricing import (
    Totals,
    to_decimal,
    validate_price,
    validate_quantity,
    validate_tax_percent,
)
from sales_kernel.domain.workflow import SALES_ORDER_WORKFLOW
from sales_kernel.exceptions import InvalidInputError, SalesKernelError
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.models import SalesOrder, SalesOrderLine
from sales_kernel.services.base import BaseService
from sales_kernel.services.work_order_service import WorkOrderService

logger = get_logger("services.sales_order")


def _require_text(value: object, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(field, value, "must be a non-empty string")
    return value.strip()


def _optional_weight(value: object, field: str) -> Decimal | None:
    if value is None:
        return None
    weight = to_decimal(value, field)
    if weight < 0:
        raise InvalidInputError(field, value, "weight must not be negative")
    return weight


def _coerce_line(line: LineItemInput | Mapping) -> LineItemInput:
    if isinstance(line, LineItemInput):
        return line
    if isinstance(line, Mapping):
        try:
            return LineItemInput(**line)
        except TypeError as exc:
            raise InvalidInputError("lines", dict(line), str(exc)) from exc
    raise InvalidInputError("lines", line, "expected LineItemInput or mapping")


def build_order_lines(
    lines: Sequence[LineItemInput | Mapping],
    actor_id: UUID,
) -> list[SalesOrderLine]:
    """
    Validate line inputs and number them 0..n-1 in the given order.

    Raises:
        InvalidInputError: On the first malformed line.
    """
    built = []
    for index, raw in enumerate(lines):
        line = _coerce_line(raw)
        prefix = f"lines[{index}]"
        built.append(
            SalesOrderLine(
                line_index=index,
                item_code=_require_text(line.item_code, f"{prefix}.item_code"),
                quantity=validate_quantity(line.quantity, f"{prefix}.quantity"),
                price_per_unit=validate_price(line.price_per_unit, f"{prefix}.price_per_unit"),
                net_weight_per_pc_g=_optional_weight(
                    line.net_weight_per_pc_g, f"{prefix}.net_weight_per_pc_g"
                ),
                gross_weight_per_pc_g=_optional_weight(
                    line.gross_weight_per_pc_g, f"{prefix}.gross_weight_per_pc_g"
                ),
                created_by_id=actor_id,
            )
        )
    return built


class SalesOrderService(BaseService):
    """
    Drives sales orders through draft -> approved / cancelled.

    Every public mutator runs in its own savepoint and flushes; the caller
    commits.
    """

    def __init__(self, session, clock=None, config=None):
        super().__init__(session, clock, config)
        self._work_orders = WorkOrderService(session, self.clock, self.config)

    def create_draft(
        self,
        customer_ref: str,
        po_number: str,
        currency: str,
        tax_type: TaxType | str,
        tax_percent: Decimal | str | int,
        payment_terms_days: int | None,
        lines: Sequence[LineItemInput | Mapping],
        actor_id: UUID,
    ) -> SalesOrderView:
        """
        Persist a new draft order.

        ``payment_terms_days=None`` takes the configured default.

        Raises:
            InvalidInputError: Any header field or line is malformed.
        """
        with LogContext.bind(actor_id=actor_id):
            try:
                order = SalesOrder(
                    customer_ref=_require_text(customer_ref, "customer_ref"),
                    po_number=_require_text(po_number, "po_number"),
                    currency=validate_currency(currency),
                    tax_type=self._validate_tax_type(tax_type),
                    tax_percent=validate_tax_percent(tax_percent),
                    payment_terms_days=self._validate_terms(payment_terms_days),
                    status=SalesOrderStatus.DRAFT,
                    created_by_id=actor_id,
                )
                order.lines = build_order_lines(lines, actor_id)
                with self.atomic():
                    self.gateway.save_order(order)
            except SalesKernelError as exc:
                self._log_failure("create_draft", None, exc)
                raise

            logger.info(
                "sales_order_created",
                extra={
                    "order_id": str(order.id),
                    "po_number": order.po_number,
                    "line_count": len(order.lines),
                },
            )
            return order.to_dto()

    def replace_lines(
        self,
        order_id: UUID,
        lines: Sequence[LineItemInput | Mapping],
        actor_id: UUID,
    ) -> SalesOrderView:
        """
        Replace every line of a draft order.

        Raises:
            InvalidTransitionError: The order is not a draft.
            InvalidInputError: A line is malformed; the old lines are kept.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with self.atomic():
                    order = self.gateway.get_order(order_id, for_update=True)
                    SALES_ORDER_WORKFLOW.require(order.id, order.status, "edit_lines")
                    new_lines = build_order_lines(lines, actor_id)

                    # Flush the deletes first so line_index values can be reused
                    order.lines.clear()
                    self.session.flush()
                    order.lines.extend(new_lines)
                    order.updated_by_id = actor_id
                    self.gateway.save_order(order)
            except SalesKernelError as exc:
                self._log_failure("replace_lines", order_id, exc)
                raise

            logger.info(
                "sales_order_lines_replaced",
                extra={"line_count": len(order.lines)},
            )
            return order.to_dto()

    def approve(self, order_id: UUID, actor_id: UUID) -> SalesOrderView:
        """
        Approve a draft order and derive one work order per line.

        Postconditions:
            - status == approved and approved_at is set.
            - Exactly one work order exists per line.

        Raises:
            InvalidTransitionError: The order is not a draft.
            InvalidInputError: The order has no lines.
            ExhaustedSequenceError: WO numbers ran out; nothing is persisted.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with self.atomic():
                    order = self.gateway.get_order(order_id, for_update=True)
                    SALES_ORDER_WORKFLOW.require(order.id, order.status, "approve")
                    if not order.lines:
                        raise InvalidInputError(
                            "lines", 0, "an order needs at least one line to be approved"
                        )
                    totals = order.totals()

                    order.status = SalesOrderStatus.APPROVED
                    order.approved_at = self.clock.now()
                    order.updated_by_id = actor_id
                    self.gateway.save_order(order)

                    work_orders = self._work_orders.derive_for_order(order, actor_id)
            except SalesKernelError as exc:
                self._log_failure("approve", order_id, exc)
                raise

            logger.info(
                "sales_order_approved",
                extra={
                    "total": totals.total,
                    "currency": order.currency,
                    "work_order_count": len(work_orders),
                },
            )
            return order.to_dto()

    def cancel(self, order_id: UUID, actor_id: UUID) -> SalesOrderView:
        """
        Cancel a draft order.

        Raises:
            InvalidTransitionError: The order is not a draft.
        """
        with LogContext.bind(order_id=order_id, actor_id=actor_id):
            try:
                with self.atomic():
                    order = self.gateway.get_order(order_id, for_update=True)
                    SALES_ORDER_WORKFLOW.require(order.id, order.status, "cancel")
                    order.status = SalesOrderStatus.CANCELLED
                    order.updated_by_id = actor_id
                    self.gateway.save_order(order)
            except SalesKernelError as exc:
                self._log_failure("cancel", order_id, exc)
                raise

            logger.info("sales_order_cancelled")
            return order.to_dto()

    def totals(self, order_id: UUID) -> Totals:
        """Subtotal, tax and total recomputed from the order's lines."""
        return self.gateway.get_order(order_id).totals()

    def get(self, order_id: UUID) -> SalesOrderView:
        return self.gateway.get_order(order_id).to_dto()

    @staticmethod
    def _validate_tax_type(tax_type: TaxType | str) -> TaxType:
        try:
            return TaxType(tax_type)
        except ValueError as exc:
            raise InvalidInputError(
                "tax_type", tax_type, f"must be one of {[t.value for t in TaxType]}"
            ) from exc

    def _validate_terms(self, payment_terms_days: int | None) -> int:
        if payment_terms_days is None:
            return self.config.default_payment_terms_days
        if isinstance(payment_terms_days, bool) or not isinstance(payment_terms_days, int):
            raise InvalidInputError("payment_terms_days", payment_terms_days, "must be an integer")
        if payment_terms_days < 0:
            raise InvalidInputError("payment_terms_days", payment_terms_days, "must not be negative")
        return payment_terms_days

    @staticmethod
    def _log_failure(operation: str, order_id: UUID | None, exc: SalesKernelError) -> None:
        logger.warning(
            "sales_order_operation_failed",
            extra={
                "operation": operation,
                "order_id": str(order_id) if order_id is not None else None,
                "error_code": exc.code,
                "error": str(exc),
            },
        )
