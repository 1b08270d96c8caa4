"""
Tests for NumberingService.

Verifies:
- Numbers are sequential per (kind, year) and formatted WO-YYYY-NNNNN
- Kinds and years have independent counters
- 99,999 is the last value; the next request fails
- The counter row is the source of truth (no aggregate over documents)
"""

import inspect

import pytest
from sqlalchemy import inspect as sa_inspect

from sales_kernel.domain.numbering import DocumentKind
from sales_kernel.exceptions import ExhaustedSequenceError
from sales_kernel.services.numbering_service import NumberingService


class TestSequentialAllocation:

    def test_first_numbers(self, numbering_service):
        assert numbering_service.next_number(DocumentKind.WORK_ORDER, 2025) == "WO-2025-00001"
        assert numbering_service.next_number(DocumentKind.WORK_ORDER, 2025) == "WO-2025-00002"
        assert numbering_service.current_value(DocumentKind.WORK_ORDER, 2025) == 2

    def test_kinds_are_independent(self, numbering_service):
        numbering_service.next_value(DocumentKind.WORK_ORDER, 2025)
        numbering_service.next_value(DocumentKind.WORK_ORDER, 2025)
        assert numbering_service.next_number(DocumentKind.INVOICE, 2025) == "INV-2025-00001"

    def test_years_are_independent(self, numbering_service):
        numbering_service.next_value(DocumentKind.WORK_ORDER, 2025)
        assert numbering_service.next_value(DocumentKind.WORK_ORDER, 2026) == 1
        assert numbering_service.next_value(DocumentKind.WORK_ORDER, 2025) == 2

    def test_unscoped_invoice_numbers(self, numbering_service):
        assert numbering_service.next_number(DocumentKind.INVOICE, None) == "INV-00001"

    def test_unused_counter(self, numbering_service):
        assert numbering_service.current_value(DocumentKind.INVOICE, 2030) is None


class TestExhaustion:

    def test_last_value_then_exhausted(self, numbering_service):
        numbering_service.reset(DocumentKind.WORK_ORDER, 2025, 99_998)
        assert numbering_service.next_number(DocumentKind.WORK_ORDER, 2025) == "WO-2025-99999"

        with pytest.raises(ExhaustedSequenceError) as exc_info:
            numbering_service.next_value(DocumentKind.WORK_ORDER, 2025)
        assert exc_info.value.code == "EXHAUSTED_SEQUENCE"
        assert exc_info.value.year == 2025
        assert numbering_service.current_value(DocumentKind.WORK_ORDER, 2025) == 99_999

    def test_exhaustion_is_per_year(self, numbering_service):
        numbering_service.reset(DocumentKind.WORK_ORDER, 2025, 99_999)
        assert numbering_service.next_value(DocumentKind.WORK_ORDER, 2026) == 1

    def test_custom_ceiling(self, session):
        numbers = NumberingService(session, max_value=2)
        numbers.next_value(DocumentKind.INVOICE, 2025)
        numbers.next_value(DocumentKind.INVOICE, 2025)
        with pytest.raises(ExhaustedSequenceError):
            numbers.next_value(DocumentKind.INVOICE, 2025)


class TestCounterImplementation:

    def test_counter_table_exists(self, session):
        columns = {c["name"] for c in sa_inspect(session.bind).get_columns("sequence_counters")}
        assert {"name", "current_value"} <= columns

    def test_no_aggregate_max(self):
        source = inspect.getsource(NumberingService)
        assert "func.max" not in source
        assert "MAX(" not in source
