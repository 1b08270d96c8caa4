"""Read-only query selectors."""

from sales_kernel.selectors.invoice_selector import InvoiceSelector

__all__ = ["InvoiceSelector"]
