"""
Module: sales_kernel.models.sales_order
Responsibility: ORM persistence for sales orders and their ordered lines.
Architecture position: Kernel > Models.  May import from db/ and domain/.
    MUST NOT import from services/ or selectors/.

Invariants enforced:
    - line_index is unique per order and stable for the life of the order.
    - Totals are never stored; totals() recomputes them from the lines.
    - Lines of a non-draft order are frozen (see db/immutability.py).

Failure modes:
    - IntegrityError on a duplicate (sales_order_id, line_index).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sales_kernel.db.base import TrackedBase, UUIDString
from sales_kernel.db.types import currency_decimal_places, round_money
from sales_kernel.domain.dtos import (
    SalesOrderLineView,
    SalesOrderStatus,
    SalesOrderView,
    TaxType,
)
from sales_kernel.domain.pricing import PricedLine, Totals, compute_totals


class SalesOrder(TrackedBase):
    """
    A customer's purchase order as accepted by us.

    Guarantees:
        - status is one of draft, approved, cancelled.
        - approved_at is set exactly when status becomes approved.
        - lines are always loaded ordered by line_index.
    """

    __tablename__ = "sales_orders"

    __table_args__ = (
        CheckConstraint(
            "payment_terms_days >= 0", name="ck_sales_orders_payment_terms"
        ),
        Index("idx_sales_orders_status", "status"),
        Index("idx_sales_orders_po_number", "po_number"),
    )

    customer_ref: Mapped[str] = mapped_column(String(255), nullable=False)

    # Not unique: customers reuse PO numbers across orders
    po_number: Mapped[str] = mapped_column(String(100), nullable=False)

    currency: Mapped[str] = mapped_column(String(3), nullable=False)

    tax_type: Mapped[TaxType] = mapped_column(
        String(20),
        default=TaxType.DOMESTIC,
        nullable=False,
    )

    tax_percent: Mapped[Decimal] = mapped_column(nullable=False)

    payment_terms_days: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[SalesOrderStatus] = mapped_column(
        String(20),
        default=SalesOrderStatus.DRAFT,
        nullable=False,
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["SalesOrderLine"]] = relationship(
        back_populates="sales_order",
        cascade="all, delete-orphan",
        order_by="SalesOrderLine.line_index",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<SalesOrder {self.po_number} [{self.status}]>"

    @property
    def decimal_places(self) -> int:
        return currency_decimal_places(self.currency)

    def line(self, line_index: int) -> "SalesOrderLine | None":
        for line in self.lines:
            if line.line_index == line_index:
                return line
        return None

    def totals(self) -> Totals:
        """Subtotal, tax and total recomputed from the current lines."""
        return compute_totals(
            [PricedLine(line.quantity, line.price_per_unit) for line in self.lines],
            self.tax_percent,
            self.decimal_places,
        )

    def to_dto(self) -> SalesOrderView:
        totals = self.totals()
        places = self.decimal_places
        return SalesOrderView(
            id=self.id,
            customer_ref=self.customer_ref,
            po_number=self.po_number,
            currency=self.currency,
            tax_type=TaxType(self.tax_type),
            tax_percent=self.tax_percent,
            payment_terms_days=self.payment_terms_days,
            status=SalesOrderStatus(self.status),
            subtotal=totals.subtotal,
            tax_amount=totals.tax_amount,
            total=totals.total,
            lines=tuple(line.to_dto(places) for line in self.lines),
            approved_at=self.approved_at,
        )


class SalesOrderLine(TrackedBase):
    """
    One item on a sales order.

    Weights are per piece, in grams, and informational only.
    """

    __tablename__ = "sales_order_lines"

    __table_args__ = (
        UniqueConstraint(
            "sales_order_id", "line_index", name="uq_sales_order_lines_index"
        ),
        CheckConstraint("quantity > 0", name="ck_sales_order_lines_quantity"),
        CheckConstraint(
            "price_per_unit >= 0", name="ck_sales_order_lines_price"
        ),
    )

    sales_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales_orders.id"),
        nullable=False,
    )

    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    net_weight_per_pc_g: Mapped[Decimal | None] = mapped_column(nullable=True)
    gross_weight_per_pc_g: Mapped[Decimal | None] = mapped_column(nullable=True)

    sales_order: Mapped["SalesOrder"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<SalesOrderLine #{self.line_index} {self.item_code} x{self.quantity}>"

    def line_amount(self, decimal_places: int) -> Decimal:
        return round_money(self.quantity * self.price_per_unit, decimal_places)

    def to_dto(self, decimal_places: int) -> SalesOrderLineView:
        return SalesOrderLineView(
            line_index=self.line_index,
            item_code=self.item_code,
            quantity=self.quantity,
            price_per_unit=self.price_per_unit,
            line_amount=self.line_amount(decimal_places),
            net_weight_per_pc_g=self.net_weight_per_pc_g,
            gross_weight_per_pc_g=self.gross_weight_per_pc_g,
        )
