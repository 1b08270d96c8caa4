"""
Unit tests for the sales order and invoice workflows.
"""

import pytest

from sales_kernel.domain.workflow import (
    INVOICE_WORKFLOW,
    SALES_ORDER_WORKFLOW,
    Transition,
    Workflow,
)
from sales_kernel.exceptions import InvalidTransitionError


class TestSalesOrderWorkflow:

    def test_draft_actions(self):
        assert set(SALES_ORDER_WORKFLOW.allowed_actions("draft")) == {
            "edit_lines", "approve", "cancel",
        }

    @pytest.mark.parametrize("state", ["approved", "cancelled"])
    def test_no_manual_edges_after_draft(self, state):
        assert SALES_ORDER_WORKFLOW.allowed_actions(state) == ()

    def test_reapprove_rejected(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            SALES_ORDER_WORKFLOW.require("so-1", "approved", "approve")
        assert exc_info.value.from_state == "approved"
        assert exc_info.value.action == "approve"
        assert exc_info.value.code == "INVALID_TRANSITION"

    def test_approve_edge(self):
        t = SALES_ORDER_WORKFLOW.require("so-1", "draft", "approve")
        assert t.to_state == "approved"
        assert t.guard is not None


class TestInvoiceWorkflow:

    def test_issue_then_void_without_payments(self):
        assert INVOICE_WORKFLOW.require("inv-1", "draft", "issue").to_state == "issued"
        assert INVOICE_WORKFLOW.require("inv-1", "issued", "void").to_state == "void"

    @pytest.mark.parametrize("state", ["part_paid", "paid", "void"])
    def test_void_rejected(self, state):
        with pytest.raises(InvalidTransitionError):
            INVOICE_WORKFLOW.require("inv-1", state, "void")

    def test_settle_is_not_a_caller_action(self):
        assert "settle" not in INVOICE_WORKFLOW.allowed_actions("issued")
        with pytest.raises(InvalidTransitionError):
            INVOICE_WORKFLOW.require("inv-1", "issued", "settle", "paid")

    def test_settle_allowed_for_kernel(self):
        t = INVOICE_WORKFLOW.require("inv-1", "part_paid", "settle", "paid", automatic=True)
        assert t.automatic

    def test_paid_cannot_go_back(self):
        with pytest.raises(InvalidTransitionError):
            INVOICE_WORKFLOW.require("inv-1", "paid", "settle", "part_paid", automatic=True)

    def test_terminal_states(self):
        assert set(INVOICE_WORKFLOW.terminal_states) == {"paid", "void"}


class TestWorkflowDefinition:

    def test_unknown_initial_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="x",
                states=("a",), transitions=(),
            )

    def test_transition_to_unknown_state(self):
        with pytest.raises(ValueError):
            Workflow(
                name="w", description="", initial_state="a",
                states=("a",), transitions=(Transition("a", "b", action="go"),),
            )
