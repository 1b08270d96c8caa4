#!/usr/bin/env python3
"""
Walk one sales order through the full order-to-cash cycle.

Creates a two-line order, approves it (deriving work orders), bills part of
it, records a part payment and a final payment, then prints the invoice as
a finance user and as a production user would see it.

Usage:
    python3 scripts/demo_order_to_cash.py
    python3 scripts/demo_order_to_cash.py --db-url sqlite:///demo.db
    python3 scripts/demo_order_to_cash.py --config sales_kernel.yaml
"""

import argparse
import logging
import sys
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _print_invoice(label: str, view: dict) -> None:
    print(f"    {label}:")
    for key, value in view.items():
        if key == "lines":
            for line in value:
                print(f"      - {line}")
        else:
            print(f"      {key:<16} {value}")


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--db-url", default="sqlite:///:memory:", help="Database URL")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--verbose", action="store_true", help="Emit JSON logs to stderr")
    args = parser.parse_args()

    from sales_kernel.config import KernelConfig, load_config
    from sales_kernel.db.engine import (
        create_tables,
        init_engine_from_url,
        read_session_scope,
        session_scope,
    )
    from sales_kernel.db.immutability import register_immutability_listeners
    from sales_kernel.domain.clock import DeterministicClock
    from sales_kernel.domain.dtos import LineItemInput
    from sales_kernel.logging_config import configure_logging
    from sales_kernel.selectors import InvoiceSelector
    from sales_kernel.services import (
        InvoiceService,
        PaymentLedger,
        SalesOrderService,
        WorkOrderService,
    )
    from sales_services.access_policy import Role, effective_role, redact

    config = load_config(args.config) if args.config else KernelConfig(database_url=args.db_url)
    if not args.verbose:
        logging.disable(logging.CRITICAL)
    configure_logging(level=config.log_level_value)

    print()
    print("  [1/6] Creating schema...")
    init_engine_from_url(config.database_url)
    create_tables()
    register_immutability_listeners()

    clock = DeterministicClock(datetime(2025, 3, 1, 10, 0, 0, tzinfo=UTC))
    actor_id = uuid4()

    print("  [2/6] Creating and approving sales order...")
    with session_scope() as session:
        orders = SalesOrderService(session, clock, config)
        draft = orders.create_draft(
            customer_ref="ACME Forgings",
            po_number="PO-7781",
            currency="INR",
            tax_type="domestic",
            tax_percent=Decimal("18"),
            payment_terms_days=30,
            lines=[
                LineItemInput("FLANGE-40", 100, Decimal("100.00"), Decimal("410"), Decimal("450")),
                LineItemInput("BUSH-12", 50, Decimal("200.00")),
            ],
            actor_id=actor_id,
        )
        order = orders.approve(draft.id, actor_id)
        print(f"        subtotal={order.subtotal} tax={order.tax_amount} total={order.total}")
        for wo in WorkOrderService(session, clock, config).work_orders_for_order(order.id):
            print(f"        {wo.wo_number}  line {wo.line_index}  {wo.item_code} x{wo.quantity}  [{wo.current_stage.value}]")

    print("  [3/6] Issuing invoice for 60 flanges...")
    with session_scope() as session:
        invoice = InvoiceService(session, clock, config).create_and_issue(
            order.id, [(0, 60)], actor_id
        )
        print(f"        {invoice.invoice_number} total={invoice.total} due={invoice.due_date}")

    print("  [4/6] Recording part payment...")
    clock.advance_days(40)
    with session_scope() as session:
        PaymentLedger(session, clock, config).record_payment(
            invoice.id, Decimal("5000.00"), "bank_transfer", "NEFT-001", actor_id
        )
    with read_session_scope() as session:
        view = InvoiceSelector(session, clock).get(invoice.id)
        print(f"        status={view.status.value} display={view.display_status} "
              f"balance={view.balance} days_overdue={view.days_overdue}")

    print("  [5/6] Settling the balance...")
    with session_scope() as session:
        PaymentLedger(session, clock, config).record_payment(
            invoice.id, view.balance, "cheque", "CHQ-20931", actor_id
        )
        view = InvoiceSelector(session, clock).get(invoice.id)
        print(f"        status={view.status.value} balance={view.balance}")

    print("  [6/6] Role-filtered views:")
    _print_invoice("finance_user", redact(view, effective_role([Role.FINANCE_USER])))
    _print_invoice("production", redact(view, effective_role([Role.PRODUCTION])))
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
