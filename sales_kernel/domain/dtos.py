"""
Domain DTOs and status enums.

Frozen value objects that cross the kernel boundary: inputs accepted by the
services and read views returned to callers.  Views carry every field the
kernel computes, including financial ones; hiding fields from restricted
roles is the job of ``sales_services.access_policy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class SalesOrderStatus(str, Enum):
    DRAFT = "draft"
    APPROVED = "approved"
    CANCELLED = "cancelled"


class TaxType(str, Enum):
    DOMESTIC = "domestic"
    EXPORT = "export"


class InvoiceStatus(str, Enum):
    """Committed invoice states.  ``overdue`` is never stored."""
    DRAFT = "draft"
    ISSUED = "issued"
    PART_PAID = "part_paid"
    PAID = "paid"
    VOID = "void"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    OTHER = "other"


class WorkOrderStage(str, Enum):
    """Production stages, in shop-floor order."""
    GOODS_IN = "goods_in"
    PRODUCTION_PLANNING = "production_planning"
    PROFORMA_SENT = "proforma_sent"
    RAW_MATERIAL_CHECK = "raw_material_check"
    RAW_MATERIAL_ORDER = "raw_material_order"
    RAW_MATERIAL_INWARDS = "raw_material_inwards"
    RAW_MATERIAL_QC = "raw_material_qc"
    CUTTING = "cutting"
    FORGING = "forging"
    CNC_PRODUCTION = "cnc_production"
    PRODUCTION = "production"
    FIRST_PIECE_QC = "first_piece_qc"
    MASS_PRODUCTION = "mass_production"
    BUFFING = "buffing"
    PLATING = "plating"
    BLASTING = "blasting"
    QC = "qc"
    PACKING = "packing"
    DISPATCH = "dispatch"


INITIAL_WORK_ORDER_STAGE = WorkOrderStage.GOODS_IN


# -----------------------------------------------------------------------------
# Inputs
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItemInput:
    """One requested sales order line."""
    item_code: str
    quantity: int
    price_per_unit: Decimal
    net_weight_per_pc_g: Decimal | None = None
    gross_weight_per_pc_g: Decimal | None = None


@dataclass(frozen=True)
class InvoiceLineRequest:
    """Invoice ``quantity`` units of sales order line ``line_index``."""
    line_index: int
    quantity: int


# -----------------------------------------------------------------------------
# Views
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class SalesOrderLineView:
    line_index: int
    item_code: str
    quantity: int
    price_per_unit: Decimal
    line_amount: Decimal
    net_weight_per_pc_g: Decimal | None = None
    gross_weight_per_pc_g: Decimal | None = None


@dataclass(frozen=True)
class SalesOrderView:
    id: UUID
    customer_ref: str
    po_number: str
    currency: str
    tax_type: TaxType
    tax_percent: Decimal
    payment_terms_days: int
    status: SalesOrderStatus
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    lines: tuple[SalesOrderLineView, ...] = field(default_factory=tuple)
    approved_at: datetime | None = None


@dataclass(frozen=True)
class WorkOrderView:
    id: UUID
    wo_number: str
    sales_order_id: UUID
    line_index: int
    item_code: str
    quantity: int
    current_stage: WorkOrderStage
    financial_snapshot: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class InvoiceLineView:
    line_index: int
    item_code: str
    quantity: int
    price_per_unit: Decimal
    amount: Decimal


@dataclass(frozen=True)
class InvoiceView:
    id: UUID
    invoice_number: str
    sales_order_id: UUID
    currency: str
    tax_percent: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    status: InvoiceStatus
    display_status: str
    days_overdue: int
    issue_date: date | None = None
    due_date: date | None = None
    lines: tuple[InvoiceLineView, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PaymentRecord:
    id: UUID
    invoice_id: UUID
    amount: Decimal
    method: PaymentMethod
    reference: str
    recorded_at: datetime
    ledger_position: int
