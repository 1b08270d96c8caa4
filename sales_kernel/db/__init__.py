"""Database layer - engine, base classes, types, and immutability guards."""

from sales_kernel.db.base import Base, TrackedBase, UUIDString
from sales_kernel.db.engine import (
    create_tables,
    get_engine,
    get_read_session,
    get_read_session_factory,
    get_session,
    get_session_factory,
    init_engine_from_url,
    read_session_scope,
    session_scope,
)
from sales_kernel.db.types import STORED_DECIMAL_SCALE, Currency, Money, ShortCode, round_money

__all__ = [
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "get_read_session",
    "get_read_session_factory",
    "read_session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "STORED_DECIMAL_SCALE",
    "Money",
    "Currency",
    "ShortCode",
    "round_money",
]
