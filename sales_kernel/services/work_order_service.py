"""
WorkOrderService -- one production work order per approved order line.

Responsibility:
    Derives work orders from an approved sales order: allocates a
    ``WO-YYYY-NNNNN`` number per line, copies item and quantity, captures the
    line's price, weights and currency in a financial snapshot and starts
    the work order at the first production stage.

Architecture position:
    Kernel > Services.  Called by SalesOrderService.approve() inside the
    approval savepoint; may also be called directly to backfill.

Invariants enforced:
    - Idempotent: a line that already has a work order is skipped, and the
      (sales_order_id, line_index) unique constraint backs the check.
    - The snapshot is written once and never changes.
    - All work orders of one call are created or none are.

Failure modes:
    - InvalidTransitionError when the order is not approved.
    - ExhaustedSequenceError when WO numbers run out; nothing is written.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sales_kernel.domain.dtos import (
    INITIAL_WORK_ORDER_STAGE,
    SalesOrderStatus,
    WorkOrderView,
)
from sales_kernel.domain.numbering import DocumentKind
from sales_kernel.exceptions import InvalidTransitionError
from sales_kernel.logging_config import LogContext, get_logger
from sales_kernel.models import SalesOrder, SalesOrderLine, WorkOrder
from sales_kernel.services.base import BaseService

logger = get_logger("services.work_order")


def _text(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


def build_financial_snapshot(order: SalesOrder, line: SalesOrderLine) -> dict[str, Any]:
    """JSON-safe copy of the money-related fields of one order line."""
    return {
        "price_per_unit": str(line.price_per_unit),
        "net_weight_per_pc_g": _text(line.net_weight_per_pc_g),
        "gross_weight_per_pc_g": _text(line.gross_weight_per_pc_g),
        "currency": order.currency,
        "line_amount": str(line.line_amount(order.decimal_places)),
    }


class WorkOrderService(BaseService):
    """Creates and lists work orders for sales orders."""

    def derive_for_order(
        self,
        order: SalesOrder | UUID,
        actor_id: UUID,
        year: int | None = None,
    ) -> list[WorkOrderView]:
        """
        Create the missing work orders of an approved order.

        Args:
            order: The order, or its id.
            actor_id: Who approved the order.
            year: Numbering year; defaults to the clock's current year.

        Returns:
            Every work order of the order, new and pre-existing, by line.
        """
        if not isinstance(order, SalesOrder):
            order = self.gateway.get_order(order)
        year = year if year is not None else self.clock.today().year

        with LogContext.bind(order_id=order.id, actor_id=actor_id):
            if order.status != SalesOrderStatus.APPROVED:
                logger.warning(
                    "work_order_derivation_rejected",
                    extra={"status": order.status},
                )
                raise InvalidTransitionError(
                    entity_type="sales_order",
                    entity_id=str(order.id),
                    from_state=order.status,
                    action="derive_work_orders",
                )

            with self.atomic():
                existing = {
                    wo.line_index
                    for wo in self.gateway.get_work_orders_for_order(order.id)
                }
                for line in order.lines:
                    if line.line_index in existing:
                        logger.debug(
                            "work_order_exists",
                            extra={"line_index": line.line_index},
                        )
                        continue
                    wo_number = self.gateway.allocate_number(DocumentKind.WORK_ORDER, year)
                    self.gateway.create_work_order(
                        WorkOrder(
                            wo_number=wo_number,
                            sales_order_id=order.id,
                            line_index=line.line_index,
                            item_code=line.item_code,
                            quantity=line.quantity,
                            current_stage=INITIAL_WORK_ORDER_STAGE,
                            financial_snapshot=build_financial_snapshot(order, line),
                            created_by_id=actor_id,
                        )
                    )
                    logger.info(
                        "work_order_created",
                        extra={
                            "wo_number": wo_number,
                            "line_index": line.line_index,
                            "quantity": line.quantity,
                        },
                    )

        return self.work_orders_for_order(order.id)

    def work_orders_for_order(self, order_id: UUID) -> list[WorkOrderView]:
        return [wo.to_dto() for wo in self.gateway.get_work_orders_for_order(order_id)]
