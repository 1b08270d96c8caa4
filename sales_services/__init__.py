"""Collaborators that sit above the sales kernel."""

from sales_services.access_policy import (
    FINANCIAL_FIELDS,
    Role,
    can_view_financials,
    effective_role,
    redact,
)

__all__ = [
    "FINANCIAL_FIELDS",
    "Role",
    "can_view_financials",
    "effective_role",
    "redact",
]
