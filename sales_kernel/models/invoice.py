"""
Module: sales_kernel.models.invoice
Responsibility: ORM persistence for customer invoices and their lines.
Architecture position: Kernel > Models.

Invariants enforced:
    - invoice_number is globally unique and never reused, even after void.
    - Each sales order line appears at most once per invoice.
    - paid_amount and balance are caches, rewritten from the full payment
      history by the payment ledger; balance never goes negative.
    - Once issued, numbers, totals, dates and lines are frozen
      (see db/immutability.py).  Status and the payment caches still move.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sales_kernel.domain.dtos import InvoiceLineView, InvoiceStatus, InvoiceView
from sales_kernel.domain.settlement import days_overdue, display_status
from sales_kernel.db.base import TrackedBase, UUIDString

# Fields that may still change after the invoice leaves draft
INVOICE_MUTABLE_AFTER_ISSUE = frozenset({
    "status",
    "paid_amount",
    "balance",
    "voided_at",
    "updated_at",
    "updated_by_id",
})


class Invoice(TrackedBase):
    """
    A bill for some quantity of one sales order's lines.

    Status is committed state only; ``overdue`` is derived on read.
    """

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_number"),
        CheckConstraint("balance >= 0", name="ck_invoices_balance"),
        CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_amount"),
        Index("idx_invoices_sales_order", "sales_order_id"),
        Index("idx_invoices_status_due", "status", "due_date"),
    )

    invoice_number: Mapped[str] = mapped_column(String(20), nullable=False)

    sales_order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("sales_orders.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    tax_percent: Mapped[Decimal] = mapped_column(nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    tax_amount: Mapped[Decimal] = mapped_column(nullable=False)
    total: Mapped[Decimal] = mapped_column(nullable=False)

    paid_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(nullable=False)

    status: Mapped[InvoiceStatus] = mapped_column(
        String(20),
        default=InvoiceStatus.DRAFT,
        nullable=False,
    )

    issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["InvoiceLine"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceLine.line_index",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.invoice_number} [{self.status}] balance={self.balance}>"

    def to_dto(self, as_of: date) -> InvoiceView:
        status = InvoiceStatus(self.status)
        return InvoiceView(
            id=self.id,
            invoice_number=self.invoice_number,
            sales_order_id=self.sales_order_id,
            currency=self.currency,
            tax_percent=self.tax_percent,
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total=self.total,
            paid_amount=self.paid_amount,
            balance=self.balance,
            status=status,
            display_status=display_status(status, self.due_date, self.balance, as_of),
            days_overdue=days_overdue(status, self.due_date, self.balance, as_of),
            issue_date=self.issue_date,
            due_date=self.due_date,
            lines=tuple(line.to_dto() for line in self.lines),
        )


class InvoiceLine(TrackedBase):
    """Invoiced quantity of one sales order line, priced at the order price."""

    __tablename__ = "invoice_lines"

    __table_args__ = (
        UniqueConstraint("invoice_id", "line_index", name="uq_invoice_lines_index"),
        CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    # line_index of the sales order line being billed
    line_index: Mapped[int] = mapped_column(Integer, nullable=False)
    item_code: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(nullable=False)
    price_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    invoice: Mapped["Invoice"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<InvoiceLine #{self.line_index} {self.item_code} x{self.quantity}>"

    def to_dto(self) -> InvoiceLineView:
        return InvoiceLineView(
            line_index=self.line_index,
            item_code=self.item_code,
            quantity=self.quantity,
            price_per_unit=self.price_per_unit,
            amount=self.amount,
        )
