"""
Module: sales_kernel.models.work_order
Responsibility: ORM persistence for production work orders derived from
    approved sales order lines.
Architecture position: Kernel > Models.

Invariants enforced:
    - wo_number is globally unique.
    - At most one work order per (sales_order_id, line_index).
    - Identity, quantity and financial_snapshot never change after insert
      (see db/immutability.py); only current_stage moves.
"""

from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from sales_kernel.db.base import TrackedBase, UUIDString
from sales_kernel.domain.dtos import (
    INITIAL_WORK_ORDER_STAGE,
    WorkOrderStage,
    WorkOrderView,
)

# Fields frozen once the row exists
WORK_ORDER_IMMUTABLE_FIELDS = frozenset({
    "wo_number",
    "sales_order_id",
    "line_index",
    "item_code",
    "quantity",
    "financial_snapshot",
})


class WorkOrder(TrackedBase):
    """
    A shop-floor job for one sales order line.

    ``financial_snapshot`` holds the price, weights, currency and line amount
    as they were when the order was approved, with Decimals as strings.
    """

    __tablename__ = "work_orders"

    __table_args__ = (
        UniqueConstraint("wo_number", name="uq_work_orders_number"),
        UniqueConstraint(
            "sales_order_id", "line_index", name="uq_work_orders_order_line"
        ),
        Index("idx_work_orders_sales_order", "sales_order_id"),
    )

    wo_number: Mapped[str] = mapped_column(String(20), nullable=False)

    sales_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales_orders.id"),
        nullable=False,
    )

    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)

    current_stage: Mapped[WorkOrderStage] = mapped_column(
        String(40),
        default=INITIAL_WORK_ORDER_STAGE,
        nullable=False,
    )

    financial_snapshot: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<WorkOrder {self.wo_number} line {self.line_index} [{self.current_stage}]>"

    def to_dto(self) -> WorkOrderView:
        return WorkOrderView(
            id=self.id,
            wo_number=self.wo_number,
            sales_order_id=self.sales_order_id,
            line_index=self.line_index,
            item_code=self.item_code,
            quantity=self.quantity,
            current_stage=WorkOrderStage(self.current_stage),
            financial_snapshot=dict(self.financial_snapshot),
        )
