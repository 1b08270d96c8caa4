"""
Typed Exception Hierarchy for the Sales Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SalesKernelError:

    SalesKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidInputError
    |
    +-- LifecycleError
    |   +-- InvalidTransitionError
    |
    +-- InvoicingError
    |   +-- OverInvoicedError
    |
    +-- PaymentError
    |   +-- ExceedsBalanceError
    |
    +-- NumberingError
    |   +-- ExhaustedSequenceError
    |
    +-- NotFoundError
    |   +-- OrderNotFoundError
    |   +-- InvoiceNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                  | When Raised
----------------------|--------------------------------------------------------
INVALID_INPUT         | Bad quantity, price, tax percent, currency or amount
INVALID_TRANSITION    | Illegal lifecycle edge (re-approve, edit approved lines)
OVER_INVOICED         | Invoice quantity exceeds remaining uninvoiced quantity
EXCEEDS_BALANCE       | Payment larger than the outstanding invoice balance
EXHAUSTED_SEQUENCE    | More than 99,999 numbers requested for one kind/year
ORDER_NOT_FOUND       | Sales order id does not exist
INVOICE_NOT_FOUND     | Invoice id does not exist
IMMUTABILITY_VIOLATION| Update/delete of an append-only or frozen record

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch by type and read structured attributes, never parse messages:

    try:
        ledger.record_payment(invoice_id, amount, method, reference, actor_id)
    except ExceedsBalanceError as e:
        api_response(code=e.code, balance=e.balance, amount=e.amount)

No error is retried by the kernel. ExhaustedSequenceError in particular
needs operator intervention.
"""

from decimal import Decimal


class SalesKernelError(Exception):
    """
    Base exception for all sales kernel errors.

    All subclasses carry a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "SALES_KERNEL_ERROR"


# Validation


class ValidationError(SalesKernelError):
    """Base exception for input validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidInputError(ValidationError):
    """Malformed quantity, price, percentage or amount.

    Raised before any mutation; nothing is persisted.
    """

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid {field} ({value}): {reason}")


# Lifecycle


class LifecycleError(SalesKernelError):
    """Base exception for state machine errors."""

    code: str = "LIFECYCLE_ERROR"


class InvalidTransitionError(LifecycleError):
    """The requested action is not a legal edge from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, from_state: str, action: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state '{from_state}'"
        )


# Invoicing


class InvoicingError(SalesKernelError):
    """Base exception for invoicing errors."""

    code: str = "INVOICING_ERROR"


class OverInvoicedError(InvoicingError):
    """Invoiced quantity would exceed the remaining quantity on the order line."""

    code: str = "OVER_INVOICED"

    def __init__(self, order_id: str, line_index: int, requested: int, remaining: int):
        self.order_id = order_id
        self.line_index = line_index
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Cannot invoice {requested} on line {line_index} of order {order_id}: "
            f"only {remaining} remaining"
        )


# Payments


class PaymentError(SalesKernelError):
    """Base exception for payment errors."""

    code: str = "PAYMENT_ERROR"


class ExceedsBalanceError(PaymentError):
    """Payment amount is larger than the current invoice balance."""

    code: str = "EXCEEDS_BALANCE"

    def __init__(self, invoice_id: str, amount: Decimal, balance: Decimal):
        self.invoice_id = invoice_id
        self.amount = str(amount)
        self.balance = str(balance)
        super().__init__(
            f"Payment cannot exceed balance: amount {amount} > balance {balance} "
            f"on invoice {invoice_id}"
        )


# Numbering


class NumberingError(SalesKernelError):
    """Base exception for document numbering errors."""

    code: str = "NUMBERING_ERROR"


class ExhaustedSequenceError(NumberingError):
    """No sequence values left for this kind and year."""

    code: str = "EXHAUSTED_SEQUENCE"

    def __init__(self, kind: str, year: int | None, max_value: int):
        self.kind = kind
        self.year = year
        self.max_value = max_value
        scope = year if year is not None else "all years"
        super().__init__(
            f"Sequence {kind} for {scope} exhausted at {max_value}; "
            f"operator intervention required"
        )


# Lookups


class NotFoundError(SalesKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class OrderNotFoundError(NotFoundError):
    """Sales order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Sales order not found: {order_id}")


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given ID was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, invoice_id: str):
        self.invoice_id = invoice_id
        super().__init__(f"Invoice not found: {invoice_id}")


# Immutability


class ImmutabilityError(SalesKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
