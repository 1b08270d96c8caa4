"""
Canonical workflow types (``sales_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the sales order and invoice state machines.  The
services consult these definitions before every state change, so the legal
edges live in one place as data.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Automatic transitions (payment-driven) cannot be requested by callers.
"""

from __future__ import annotations

from dataclasses import dataclass

from sales_kernel.exceptions import InvalidTransitionError
from sales_kernel.logging_config import get_logger

logger = get_logger("domain.workflow")


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only -- the owning service evaluates it.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition.

    ``automatic=True`` marks edges that only the kernel itself takes
    (status recomputation after a payment).
    """
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    automatic: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(f"{self.name}: initial state {self.initial_state!r} not in states")
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.from_state}->{t.to_state} uses unknown state"
                )

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        return tuple(
            t.action for t in self.transitions
            if t.from_state == from_state and not t.automatic
        )

    def find(self, from_state: str, action: str, to_state: str | None = None) -> Transition | None:
        for t in self.transitions:
            if t.from_state != from_state or t.action != action:
                continue
            if to_state is None or t.to_state == to_state:
                return t
        return None

    def require(
        self,
        entity_id: object,
        from_state: str,
        action: str,
        to_state: str | None = None,
        *,
        automatic: bool = False,
    ) -> Transition:
        """
        Return the matching transition or raise.

        Callers pass ``automatic=True`` only for kernel-driven recomputation;
        a manual request for an automatic edge is rejected like any other
        illegal edge.

        Raises:
            InvalidTransitionError: No such edge from ``from_state``.
        """
        transition = self.find(from_state, action, to_state)
        if transition is None or (transition.automatic and not automatic):
            logger.warning(
                "invalid_transition_rejected",
                extra={
                    "workflow": self.name,
                    "entity_id": str(entity_id),
                    "from_state": from_state,
                    "action": action,
                    "to_state": to_state,
                },
            )
            raise InvalidTransitionError(
                entity_type=self.name,
                entity_id=str(entity_id),
                from_state=from_state,
                action=action,
            )
        return transition


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_VALID_LINES = Guard(
    name="has_valid_lines",
    description="Order has at least one line and every quantity/price is valid",
)

WITHIN_REMAINING_QUANTITY = Guard(
    name="within_remaining_quantity",
    description="Every invoiced quantity fits the uninvoiced quantity of its order line",
)

BALANCE_ZERO = Guard(
    name="balance_zero",
    description="Invoice balance is zero",
)

NO_PAYMENTS = Guard(
    name="no_payments",
    description="No payment has been recorded against the invoice",
)


# -----------------------------------------------------------------------------
# Sales Order Workflow
# -----------------------------------------------------------------------------

SALES_ORDER_WORKFLOW = Workflow(
    name="sales_order",
    description="Sales order lifecycle",
    initial_state="draft",
    states=("draft", "approved", "cancelled"),
    transitions=(
        Transition("draft", "draft", action="edit_lines"),
        Transition("draft", "approved", action="approve", guard=HAS_VALID_LINES),
        Transition("draft", "cancelled", action="cancel"),
    ),
    terminal_states=("cancelled",),
)


# -----------------------------------------------------------------------------
# Invoice Workflow
# -----------------------------------------------------------------------------

INVOICE_WORKFLOW = Workflow(
    name="invoice",
    description="Customer invoice lifecycle driven by recorded payments",
    initial_state="draft",
    states=("draft", "issued", "part_paid", "paid", "void"),
    transitions=(
        Transition("draft", "issued", action="issue", guard=WITHIN_REMAINING_QUANTITY),
        Transition("draft", "void", action="void"),
        Transition("issued", "void", action="void", guard=NO_PAYMENTS),
        Transition("issued", "issued", action="settle", automatic=True),
        Transition("issued", "part_paid", action="settle", automatic=True),
        Transition("issued", "paid", action="settle", guard=BALANCE_ZERO, automatic=True),
        Transition("part_paid", "part_paid", action="settle", automatic=True),
        Transition("part_paid", "paid", action="settle", guard=BALANCE_ZERO, automatic=True),
    ),
    terminal_states=("paid", "void"),
)
