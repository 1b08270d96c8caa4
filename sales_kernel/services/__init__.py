"""Services for the sales kernel (write side)."""

from sales_kernel.services.data_access import OrderDataGateway
from sales_kernel.services.invoice_service import InvoiceService
from sales_kernel.services.numbering_service import NumberingService, SequenceCounter
from sales_kernel.services.order_service import SalesOrderService
from sales_kernel.services.payment_ledger import PaymentLedger
from sales_kernel.services.work_order_service import WorkOrderService

__all__ = [
    "InvoiceService",
    "NumberingService",
    "OrderDataGateway",
    "PaymentLedger",
    "SalesOrderService",
    "SequenceCounter",
    "WorkOrderService",
]
