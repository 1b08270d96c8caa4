"""
Unit tests for document number formatting and parsing.
"""

import pytest

from sales_kernel.domain.numbering import (
    MAX_SEQUENCE,
    NUMBER_PATTERN,
    DocumentKind,
    ParsedNumber,
    format_number,
    parse_number,
    sequence_key,
)
from sales_kernel.exceptions import InvalidInputError


class TestFormatNumber:

    def test_work_order_number(self):
        assert format_number(DocumentKind.WORK_ORDER, 2025, 68) == "WO-2025-00068"

    def test_invoice_number(self):
        assert format_number(DocumentKind.INVOICE, 2025, 1) == "INV-2025-00001"

    def test_invoice_number_without_year(self):
        assert format_number(DocumentKind.INVOICE, None, 12) == "INV-00012"

    def test_last_value(self):
        assert format_number(DocumentKind.WORK_ORDER, 2025, MAX_SEQUENCE) == "WO-2025-99999"

    @pytest.mark.parametrize("value", [0, -1, MAX_SEQUENCE + 1])
    def test_out_of_range(self, value):
        with pytest.raises(InvalidInputError):
            format_number(DocumentKind.WORK_ORDER, 2025, value)

    def test_formatted_numbers_match_pattern(self):
        for number in (
            format_number(DocumentKind.WORK_ORDER, 2025, 1),
            format_number(DocumentKind.INVOICE, 1999, 54321),
            format_number(DocumentKind.INVOICE, None, 7),
        ):
            assert NUMBER_PATTERN.match(number)


class TestParseNumber:

    def test_parse_with_year(self):
        assert parse_number("WO-2025-00068") == ParsedNumber(
            kind=DocumentKind.WORK_ORDER, year=2025, sequence=68
        )

    def test_parse_without_year(self):
        assert parse_number("INV-00012") == ParsedNumber(
            kind=DocumentKind.INVOICE, year=None, sequence=12
        )

    @pytest.mark.parametrize(
        "text",
        ["", "WO-2025-0068", "WO-25-00068", "wo-2025-00068", "PO-2025-00001", "WO-2025-00000"],
    )
    def test_rejects_malformed(self, text):
        with pytest.raises(InvalidInputError):
            parse_number(text)


class TestSequenceKey:

    def test_keys_are_scoped_by_kind_and_year(self):
        assert sequence_key(DocumentKind.WORK_ORDER, 2025) == "WO:2025"
        assert sequence_key(DocumentKind.INVOICE, 2025) == "INV:2025"
        assert sequence_key(DocumentKind.WORK_ORDER, 2026) != sequence_key(
            DocumentKind.WORK_ORDER, 2025
        )

    def test_unscoped_key(self):
        assert sequence_key(DocumentKind.INVOICE, None) == "INV"

    @pytest.mark.parametrize("year", [0, 10000, True, "2025"])
    def test_bad_year(self, year):
        with pytest.raises(InvalidInputError):
            sequence_key(DocumentKind.WORK_ORDER, year)
