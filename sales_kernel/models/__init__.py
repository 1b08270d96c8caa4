"""ORM models for the sales kernel."""

from sales_kernel.models.invoice import Invoice, InvoiceLine
from sales_kernel.models.payment import Payment
from sales_kernel.models.sales_order import SalesOrder, SalesOrderLine
from sales_kernel.models.work_order import WorkOrder

__all__ = [
    "SalesOrder",
    "SalesOrderLine",
    "WorkOrder",
    "Invoice",
    "InvoiceLine",
    "Payment",
]
