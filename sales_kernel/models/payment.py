"""
Module: sales_kernel.models.payment
Responsibility: ORM persistence for the append-only payment ledger.
Architecture position: Kernel > Models.

Invariants enforced:
    - Payments are never updated or deleted (see db/immutability.py).
    - amount > 0.
    - ledger_position is unique per invoice and breaks recorded_at ties.
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
from sqlalchemy.orm import Mapped, mapped_column

from sales_kernel.db.base import TrackedBase, UUIDString
from sales_kernel.domain.dtos import PaymentMethod, PaymentRecord
from sales_kernel.domain.settlement import PaymentEntry


class Payment(TrackedBase):
    """One receipt of money against one invoice."""

    __tablename__ = "payments"

    __table_args__ = (
        UniqueConstraint(
            "invoice_id", "ledger_position", name="uq_payments_invoice_position"
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        Index("idx_payments_invoice", "invoice_id"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("invoices.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    method: Mapped[PaymentMethod] = mapped_column(String(20), nullable=False)

    # Bank reference, cheque number, UPI transaction id, ...
    reference: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    ledger_position: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<Payment #{self.ledger_position} {self.amount} on {self.invoice_id}>"

    def to_entry(self) -> PaymentEntry:
        return PaymentEntry(
            amount=self.amount,
            recorded_at=self.recorded_at,
            ledger_position=self.ledger_position,
        )

    def to_dto(self) -> PaymentRecord:
        return PaymentRecord(
            id=self.id,
            invoice_id=self.invoice_id,
            amount=self.amount,
            method=PaymentMethod(self.method),
            reference=self.reference,
            recorded_at=self.recorded_at,
            ledger_position=self.ledger_position,
        )
