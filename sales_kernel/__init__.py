"""
Sales Kernel - order-to-cash core

Sales orders, derived work orders, invoices and payments with:
- Deterministic pricing and tax rounding
- Collision-free yearly document numbering
- Atomic approval with work order derivation
- Append-only payment ledger driving invoice status
"""

__version__ = "0.1.0"
