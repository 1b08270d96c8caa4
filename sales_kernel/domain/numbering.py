"""
Document number formats.

Work orders are numbered ``WO-YYYY-NNNNN`` and invoices ``INV-YYYY-NNNNN``
(or ``INV-NNNNN`` when invoice numbering is not scoped by year).  Sequence
values are zero-padded to five digits; 99,999 is the last value a
(kind, year) pair can issue.

Allocation lives in ``sales_kernel.services.numbering_service``; this module
only formats, parses and keys numbers.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from sales_kernel.exceptions import InvalidInputError

MAX_SEQUENCE = 99_999
SEQUENCE_WIDTH = 5

NUMBER_PATTERN = re.compile(
    r"^(?P<prefix>[A-Z]+)-(?:(?P<year>\d{4})-)?(?P<sequence>\d{5})$"
)


class DocumentKind(str, Enum):
    """Kinds of numbered documents.  The value is the number prefix."""

    WORK_ORDER = "WO"
    INVOICE = "INV"


@dataclass(frozen=True)
class ParsedNumber:
    kind: DocumentKind
    year: int | None
    sequence: int


def _validate_year(year: int) -> int:
    if isinstance(year, bool) or not isinstance(year, int) or not 1 <= year <= 9999:
        raise InvalidInputError("year", year, "year must be between 1 and 9999")
    return year


def sequence_key(kind: DocumentKind, year: int | None) -> str:
    """Counter row name for a (kind, year) pair, e.g. ``WO:2025``."""
    if year is None:
        return kind.value
    return f"{kind.value}:{_validate_year(year):04d}"


def format_number(kind: DocumentKind, year: int | None, value: int) -> str:
    """
    Render a sequence value as a document number.

    Raises:
        InvalidInputError: If value is outside 1..MAX_SEQUENCE.
    """
    if not 1 <= value <= MAX_SEQUENCE:
        raise InvalidInputError("sequence", value, f"must be between 1 and {MAX_SEQUENCE}")
    if year is None:
        return f"{kind.value}-{value:0{SEQUENCE_WIDTH}d}"
    return f"{kind.value}-{_validate_year(year):04d}-{value:0{SEQUENCE_WIDTH}d}"


def parse_number(text: str) -> ParsedNumber:
    """
    Parse ``WO-2025-00068`` / ``INV-00012`` back into its parts.

    Raises:
        InvalidInputError: If the text does not match the number format or
            uses an unknown prefix.
    """
    match = NUMBER_PATTERN.match(text or "")
    if match is None:
        raise InvalidInputError("document_number", text, "does not match PREFIX-[YYYY-]NNNNN")
    try:
        kind = DocumentKind(match.group("prefix"))
    except ValueError as exc:
        raise InvalidInputError("document_number", text, "unknown prefix") from exc
    year = match.group("year")
    sequence = int(match.group("sequence"))
    if sequence == 0:
        raise InvalidInputError("document_number", text, "sequence starts at 00001")
    return ParsedNumber(kind=kind, year=int(year) if year else None, sequence=sequence)
