"""
Unit tests for structured logging.

Verifies:
- LogContext.bind sets ids for the block and restores the outer values
- Records render as one JSON object carrying context ids and extras
- Kernel errors contribute their code and structured attributes
"""

import json
import logging
from decimal import Decimal
from uuid import uuid4

import pytest

from sales_kernel.exceptions import OverInvoicedError
from sales_kernel.logging_config import LogContext, StructuredFormatter


def _record(message, exc_info=None, **extra):
    record = logging.LogRecord("sales_kernel.test", logging.INFO, __file__, 1, message, (), exc_info)
    for key, val in extra.items():
        setattr(record, key, val)
    return record


class TestLogContext:

    def test_bind_nests_and_restores(self):
        outer, inner = uuid4(), uuid4()
        with LogContext.bind(order_id=outer, actor_id=None):
            assert LogContext.get_all() == {"order_id": str(outer)}
            with LogContext.bind(order_id=inner, invoice_id="INV-1"):
                assert LogContext.get_all() == {"order_id": str(inner), "invoice_id": "INV-1"}
            assert LogContext.get_all() == {"order_id": str(outer)}
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            with LogContext.bind(customer="ACME"):
                pass


class TestStructuredFormatter:

    def test_context_and_extras_in_payload(self):
        order_id = uuid4()
        with LogContext.bind(order_id=order_id):
            line = StructuredFormatter().format(
                _record("sales_order_approved", total=Decimal("23600.00"))
            )
        payload = json.loads(line)
        assert payload["message"] == "sales_order_approved"
        assert payload["order_id"] == str(order_id)
        assert payload["total"] == "23600.00"
        assert payload["level"] == "INFO"

    def test_kernel_error_fields(self):
        try:
            raise OverInvoicedError(uuid4(), 0, requested=600, remaining=500)
        except OverInvoicedError as exc:
            line = StructuredFormatter().format(
                _record("invoice_rejected", exc_info=(type(exc), exc, exc.__traceback__))
            )
        payload = json.loads(line)
        assert payload["exc_type"] == "OverInvoicedError"
        assert payload["exc_code"] == "OVER_INVOICED"
        assert payload["exc_requested"] == 600
        assert payload["exc_remaining"] == 500
        assert "traceback" in payload
