"""
sales_services.access_policy -- role-based visibility of financial fields.

Responsibility:
    Decides which role a user is acting as (including admin impersonation)
    and strips prices, weights, totals and payment terms from kernel views
    for roles that may not see them.

Architecture position:
    Services layer, above the kernel.  The kernel never reads a role and
    always returns complete views; callers filter them here on the way out.

Invariants:
    - Impersonation is an explicit argument, never ambient state.
    - Only admin and super_admin may impersonate; other requests are
      ignored and logged.
    - Redaction never mutates its input.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from sales_kernel.logging_config import get_logger

logger = get_logger("services.access_policy")


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    FINANCE_ADMIN = "finance_admin"
    FINANCE_USER = "finance_user"
    FINANCE = "finance"
    ACCOUNTS = "accounts"
    CFO = "cfo"
    DIRECTOR = "director"
    OPS_MANAGER = "ops_manager"
    SALES = "sales"
    PRODUCTION = "production"
    QUALITY = "quality"
    PACKING = "packing"
    STORES = "stores"
    PURCHASE = "purchase"
    PROCUREMENT = "procurement"
    LOGISTICS = "logistics"


# Most privileged first; decides the acting role when several are assigned
ROLE_PRECEDENCE: tuple[Role, ...] = tuple(Role)

IMPERSONATING_ROLES = frozenset({Role.SUPER_ADMIN, Role.ADMIN})

FINANCIAL_ROLES = frozenset({
    Role.SUPER_ADMIN,
    Role.ADMIN,
    Role.FINANCE_ADMIN,
    Role.FINANCE_USER,
    Role.FINANCE,
    Role.ACCOUNTS,
    Role.CFO,
    Role.DIRECTOR,
})

FINANCIAL_FIELDS = frozenset({
    "price_per_unit",
    "line_amount",
    "amount",
    "net_weight_per_pc_g",
    "gross_weight_per_pc_g",
    "financial_snapshot",
    "payment_terms_days",
    "subtotal",
    "tax_percent",
    "tax_amount",
    "total",
    "paid_amount",
    "balance",
    "currency",
})


def _parse_role(value: Role | str) -> Role | None:
    try:
        return Role(value)
    except ValueError:
        logger.warning("unknown_role_ignored", extra={"role": str(value)})
        return None


def effective_role(
    assigned_roles: Iterable[Role | str],
    impersonate_role: Role | str | None = None,
) -> Role | None:
    """
    The role a user acts as.

    Args:
        assigned_roles: Roles granted to the user.  Unknown names are ignored.
        impersonate_role: Role an admin wants to view the system as.

    Returns:
        The impersonated role when allowed, otherwise the most privileged
        assigned role, or None when the user has no known role.
    """
    roles = {r for r in (_parse_role(v) for v in assigned_roles) if r is not None}
    acting = next((r for r in ROLE_PRECEDENCE if r in roles), None)

    if impersonate_role is None:
        return acting

    target = _parse_role(impersonate_role)
    if acting not in IMPERSONATING_ROLES or target is None:
        logger.warning(
            "impersonation_denied",
            extra={
                "acting_role": acting.value if acting else None,
                "requested_role": str(impersonate_role),
            },
        )
        return acting

    logger.info(
        "impersonation_applied",
        extra={"acting_role": acting.value, "impersonated_role": target.value},
    )
    return target


def can_view_financials(role: Role | str | None) -> bool:
    if role is None:
        return False
    parsed = _parse_role(role)
    return parsed in FINANCIAL_ROLES


def _strip(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _strip(v) for k, v in value.items() if k not in FINANCIAL_FIELDS}
    if isinstance(value, (list, tuple)):
        return [_strip(v) for v in value]
    return value


def _as_dict(record: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(record) and not isinstance(record, type):
        return dataclasses.asdict(record)
    if isinstance(record, Mapping):
        return dict(record)
    raise TypeError(f"Cannot redact {type(record).__name__}; expected a dataclass or mapping")


def redact(record: Any, role: Role | str | None) -> dict[str, Any]:
    """
    Dict form of a kernel view, without financial fields unless ``role``
    may see them.  Nested lines are filtered too.
    """
    data = _as_dict(record)
    if can_view_financials(role):
        return data
    return _strip(data)
