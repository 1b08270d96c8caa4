"""
Unit tests for role resolution and financial field redaction.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from sales_kernel.domain.dtos import InvoiceLineView, InvoiceStatus, InvoiceView
from sales_services.access_policy import (
    FINANCIAL_FIELDS,
    Role,
    can_view_financials,
    effective_role,
    redact,
)


def _invoice_view() -> InvoiceView:
    return InvoiceView(
        id=uuid4(),
        invoice_number="INV-2025-00001",
        sales_order_id=uuid4(),
        currency="INR",
        tax_percent=Decimal("18"),
        subtotal=Decimal("50000.00"),
        tax_amount=Decimal("9000.00"),
        total=Decimal("59000.00"),
        paid_amount=Decimal("0"),
        balance=Decimal("59000.00"),
        status=InvoiceStatus.ISSUED,
        display_status="issued",
        days_overdue=0,
        issue_date=date(2025, 1, 15),
        due_date=date(2025, 2, 14),
        lines=(
            InvoiceLineView(
                line_index=0,
                item_code="SHAFT-25",
                quantity=500,
                price_per_unit=Decimal("100.00"),
                amount=Decimal("50000.00"),
            ),
        ),
    )


class TestEffectiveRole:

    def test_most_privileged_assigned_role_wins(self):
        assert effective_role([Role.PRODUCTION, Role.FINANCE_USER]) == Role.FINANCE_USER
        assert effective_role(["sales", "admin"]) == Role.ADMIN

    def test_no_roles(self):
        assert effective_role([]) is None

    def test_unknown_roles_ignored(self, captured_logs):
        assert effective_role(["janitor", "quality"]) == Role.QUALITY
        assert any(r["message"] == "unknown_role_ignored" for r in captured_logs())

    def test_admin_impersonates(self):
        assert effective_role([Role.ADMIN], impersonate_role="production") == Role.PRODUCTION

    def test_super_admin_impersonates(self):
        assert effective_role([Role.SUPER_ADMIN], Role.FINANCE_USER) == Role.FINANCE_USER

    def test_non_admin_impersonation_ignored(self, captured_logs):
        assert effective_role([Role.SALES], impersonate_role=Role.CFO) == Role.SALES
        denied = [r for r in captured_logs() if r["message"] == "impersonation_denied"]
        assert len(denied) == 1


class TestCanViewFinancials:

    @pytest.mark.parametrize("role", ["finance_user", "cfo", "director", "admin", "accounts"])
    def test_financial_roles(self, role):
        assert can_view_financials(role)

    @pytest.mark.parametrize("role", ["production", "quality", "packing", "stores", None])
    def test_non_financial_roles(self, role):
        assert not can_view_financials(role)


class TestRedact:

    def test_finance_sees_everything(self):
        data = redact(_invoice_view(), Role.FINANCE_USER)
        assert data["total"] == Decimal("59000.00")
        assert data["lines"][0]["price_per_unit"] == Decimal("100.00")

    def test_production_sees_no_financials(self):
        data = redact(_invoice_view(), Role.PRODUCTION)
        assert not FINANCIAL_FIELDS & set(data)
        assert data["invoice_number"] == "INV-2025-00001"
        line = data["lines"][0]
        assert line == {"line_index": 0, "item_code": "SHAFT-25", "quantity": 500}

    def test_mapping_input_not_mutated(self):
        record = {"wo_number": "WO-2025-00001", "financial_snapshot": {"total": "1"}}
        assert redact(record, "production") == {"wo_number": "WO-2025-00001"}
        assert "financial_snapshot" in record

    def test_rejects_other_types(self):
        with pytest.raises(TypeError):
            redact(["not", "a", "record"], Role.ADMIN)
