"""
ORM-level immutability enforcement.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below inspect attribute history and raise
ImmutabilityViolationError before any SQL is sent:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Bulk statements (``session.execute(update(...))``) bypass mapper events and
are reserved for migrations and test cleanup.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When Immutable                  | What
----------------|---------------------------------|------------------------------
Payment         | ALWAYS (from creation)          | Every field; no deletes
WorkOrder       | ALWAYS (from creation)          | Identity, quantity, snapshot
SalesOrderLine  | Parent order no longer draft    | Every field; no deletes
Invoice         | After status leaves draft       | All but status/payment caches
InvoiceLine     | Parent invoice no longer draft  | Every field; no deletes

===============================================================================
USAGE
===============================================================================

    from sales_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect, select
from sqlalchemy.orm.attributes import get_history

from sales_kernel.exceptions import ImmutabilityViolationError
from sales_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _block(entity_type: str, entity_id, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target, allowed: frozenset[str] = frozenset()) -> list[str]:
    changed = []
    for attr in inspect(target).mapper.column_attrs:
        if attr.key in _AUDIT_FIELDS or attr.key in allowed:
            continue
        if get_history(target, attr.key).has_changes():
            changed.append(attr.key)
    return changed


def _status_before_flush(target) -> str:
    """Status as it was in the database before this flush."""
    history = get_history(target, "status")
    if history.deleted:
        return history.deleted[0]
    return target.status


def _parent_status(connection, model, parent_id) -> str | None:
    return connection.execute(
        select(model.status).where(model.id == parent_id)
    ).scalar_one_or_none()


# Payment


def _check_payment_immutability(mapper, connection, target):
    """Payments are append-only; any column change is rejected."""
    changed = _changed_fields(target)
    if changed:
        _block(
            "Payment", target.id, "UPDATE",
            f"Payments are append-only; cannot modify '{changed[0]}'",
            field=changed[0],
        )


def _check_payment_delete(mapper, connection, target):
    _block("Payment", target.id, "DELETE", "Payments are append-only and cannot be deleted")


# WorkOrder


def _check_work_order_immutability(mapper, connection, target):
    """Only current_stage may move once a work order exists."""
    from sales_kernel.models.work_order import WORK_ORDER_IMMUTABLE_FIELDS

    for field in sorted(WORK_ORDER_IMMUTABLE_FIELDS):
        if get_history(target, field).has_changes():
            _block(
                "WorkOrder", target.id, "UPDATE",
                f"Cannot modify '{field}' on work order {target.wo_number}",
                field=field,
            )


# SalesOrderLine


def _check_sales_order_line_immutability(mapper, connection, target):
    from sales_kernel.domain.dtos import SalesOrderStatus
    from sales_kernel.models.sales_order import SalesOrder

    status = _parent_status(connection, SalesOrder, target.sales_order_id)
    if status is not None and status != SalesOrderStatus.DRAFT:
        _block(
            "SalesOrderLine", target.id, "UPDATE",
            f"Lines of a {status} sales order cannot be modified",
        )


def _check_sales_order_line_delete(mapper, connection, target):
    from sales_kernel.domain.dtos import SalesOrderStatus
    from sales_kernel.models.sales_order import SalesOrder

    status = _parent_status(connection, SalesOrder, target.sales_order_id)
    if status is not None and status != SalesOrderStatus.DRAFT:
        _block(
            "SalesOrderLine", target.id, "DELETE",
            f"Lines of a {status} sales order cannot be deleted",
        )


# Invoice


def _check_invoice_immutability(mapper, connection, target):
    """
    After issue only status and the payment caches change.

    The draft -> issued transition itself is allowed to set issue_date and
    due_date; the check looks at the status the row had before this flush.
    """
    from sales_kernel.domain.dtos import InvoiceStatus
    from sales_kernel.models.invoice import INVOICE_MUTABLE_AFTER_ISSUE

    if _status_before_flush(target) == InvoiceStatus.DRAFT:
        return

    changed = _changed_fields(target, allowed=INVOICE_MUTABLE_AFTER_ISSUE)
    if changed:
        _block(
            "Invoice", target.id, "UPDATE",
            f"Cannot modify '{changed[0]}' on issued invoice {target.invoice_number}",
            field=changed[0],
        )


def _check_invoice_delete(mapper, connection, target):
    from sales_kernel.domain.dtos import InvoiceStatus

    if _status_before_flush(target) != InvoiceStatus.DRAFT:
        _block(
            "Invoice", target.id, "DELETE",
            "Only draft invoices can be deleted; issued invoices are voided",
        )


def _check_invoice_line_immutability(mapper, connection, target):
    from sales_kernel.domain.dtos import InvoiceStatus
    from sales_kernel.models.invoice import Invoice

    status = _parent_status(connection, Invoice, target.invoice_id)
    if status is not None and status != InvoiceStatus.DRAFT:
        _block(
            "InvoiceLine", target.id, "UPDATE",
            f"Lines of a {status} invoice cannot be modified",
        )


def _check_invoice_line_delete(mapper, connection, target):
    from sales_kernel.domain.dtos import InvoiceStatus
    from sales_kernel.models.invoice import Invoice

    status = _parent_status(connection, Invoice, target.invoice_id)
    if status is not None and status != InvoiceStatus.DRAFT:
        _block(
            "InvoiceLine", target.id, "DELETE",
            f"Lines of a {status} invoice cannot be deleted",
        )


def _listeners():
    from sales_kernel.models import (
        Invoice,
        InvoiceLine,
        Payment,
        SalesOrderLine,
        WorkOrder,
    )

    return [
        (Payment, "before_update", _check_payment_immutability),
        (Payment, "before_delete", _check_payment_delete),
        (WorkOrder, "before_update", _check_work_order_immutability),
        (SalesOrderLine, "before_update", _check_sales_order_line_immutability),
        (SalesOrderLine, "before_delete", _check_sales_order_line_delete),
        (Invoice, "before_update", _check_invoice_immutability),
        (Invoice, "before_delete", _check_invoice_delete),
        (InvoiceLine, "before_update", _check_invoice_line_immutability),
        (InvoiceLine, "before_delete", _check_invoice_line_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Safe to call more than once.
    """
    for target, event_name, listener_fn in _listeners():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for target, event_name, listener_fn in _listeners():
        if event.contains(target, event_name, listener_fn):
            event.remove(target, event_name, listener_fn)
