"""
Declarative bases for the order-to-cash tables.

Every document row (sales order, work order, invoice, payment) has a uuid4
primary key and records who created it and who last changed it.  Money and
prices are declared as ``Decimal`` and stored as Numeric(38, 9); the
pricing validators refuse values finer than that scale so a reloaded row
prices identically to the one that was saved.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from sales_kernel.db.types import STORED_DECIMAL_SCALE


class UUIDString(TypeDecorator):
    """UUID held as its 36-character text form; portable across SQLite and PostgreSQL."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, STORED_DECIMAL_SCALE),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Audit columns shared by the document tables.

    ``created_by_id`` is mandatory; ``updated_by_id`` is set by the service
    performing a transition (approve, issue, settle, void).  The immutability
    listeners treat both timestamps and ``updated_by_id`` as bookkeeping, so
    touching them never counts as editing a frozen document.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
