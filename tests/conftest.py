"""
Pytest fixtures for the sales kernel test suite.

Provides:
- A database engine and schema created once per test session
- Per-test sessions isolated by transaction rollback
- A real-commit session factory for concurrency tests
- Deterministic clock, service fixtures and order/invoice factories
- Structured log capture

Environment Variables:
- DATABASE_URL: Database to test against.  When unset, a SQLite file in a
  temporary directory is used.
"""

import json
import logging
import os
import threading
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from sales_kernel.config import KernelConfig
from sales_kernel.db.base import Base
from sales_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_read_session_factory,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from sales_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from sales_kernel.domain.clock import DeterministicClock
from sales_kernel.domain.dtos import LineItemInput
from sales_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from sales_kernel.selectors import InvoiceSelector
from sales_kernel.services import (
    InvoiceService,
    NumberingService,
    PaymentLedger,
    SalesOrderService,
    WorkOrderService,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture sales_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, order_service):
            order_service.approve(...)
            assert any(r["message"] == "sales_order_approved" for r in captured_logs())
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("sales_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def database_url(tmp_path_factory) -> str:
    """DATABASE_URL if set, otherwise a throwaway SQLite file."""
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{tmp_path_factory.mktemp('db') / 'sales_kernel_test.db'}"


@pytest.fixture(scope="session")
def db_engine(database_url):
    """Single engine for the entire test session."""
    eng = init_engine_from_url(
        database_url, echo=False,
        pool_size=20, max_overflow=10, pool_timeout=30,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


def _clear_all_tables(engine):
    """Delete all rows.  Bulk statements bypass the ORM immutability listeners."""
    tables = [t.name for t in reversed(Base.metadata.sorted_tables)]
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(tables) + " CASCADE"))
        else:
            for name in tables:
                conn.execute(text(f"DELETE FROM {name}"))
        conn.commit()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    The session joins an outer transaction on a dedicated connection; any
    ``commit()`` inside the test only releases a savepoint, and the outer
    transaction is rolled back at teardown.
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Concurrency testing fixtures (real commits + table cleanup)
# =============================================================================


@pytest.fixture(scope="function")
def session_factory(db_engine, db_tables):
    """Provide a tracked session factory for sessions in concurrent threads.

    On teardown the factory blocks new sessions, closes every tracked
    session and deletes all data.
    """
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()
    closed = False

    def tracked_factory():
        nonlocal closed
        with lock:
            if closed:
                raise RuntimeError("session_factory closed (fixture teardown)")
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    with lock:
        closed = True

    for s in created_sessions:
        if s.is_active:
            s.rollback()
        s.close()

    _clear_all_tables(db_engine)


@pytest.fixture(scope="function")
def read_session_factory(db_engine, db_tables):
    """Provide a tracked read-session factory (DEFERRED begin on SQLite).

    On teardown the factory blocks new sessions and closes every tracked
    session.
    """
    factory = get_read_session_factory()
    created_sessions = []
    lock = threading.Lock()
    closed = False

    def tracked_factory():
        nonlocal closed
        with lock:
            if closed:
                raise RuntimeError("read_session_factory closed (fixture teardown)")
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    with lock:
        closed = True

    for s in created_sessions:
        if s.is_active:
            s.rollback()
        s.close()


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


# Clock and config fixtures


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock (2025-01-15 09:00 UTC)."""
    return DeterministicClock()


@pytest.fixture
def kernel_config() -> KernelConfig:
    return KernelConfig(database_url="sqlite://")


# Service fixtures


@pytest.fixture
def order_service(session, deterministic_clock, kernel_config) -> SalesOrderService:
    return SalesOrderService(session, deterministic_clock, kernel_config)


@pytest.fixture
def work_order_service(session, deterministic_clock, kernel_config) -> WorkOrderService:
    return WorkOrderService(session, deterministic_clock, kernel_config)


@pytest.fixture
def invoice_service(session, deterministic_clock, kernel_config) -> InvoiceService:
    return InvoiceService(session, deterministic_clock, kernel_config)


@pytest.fixture
def payment_ledger(session, deterministic_clock, kernel_config) -> PaymentLedger:
    return PaymentLedger(session, deterministic_clock, kernel_config)


@pytest.fixture
def numbering_service(session) -> NumberingService:
    return NumberingService(session)


@pytest.fixture
def invoice_selector(session, deterministic_clock) -> InvoiceSelector:
    return InvoiceSelector(session, deterministic_clock)


# =============================================================================
# Order / invoice factories
# =============================================================================


STANDARD_LINES = (
    LineItemInput("FLANGE-40", 100, Decimal("100.00")),
    LineItemInput("BUSH-12", 50, Decimal("200.00")),
)


@pytest.fixture
def make_draft_order(order_service, test_actor_id):
    """Create a draft order; defaults to two lines totalling 20000 + 18% GST."""

    def _make(
        lines=STANDARD_LINES,
        tax_percent=Decimal("18"),
        payment_terms_days=30,
        currency="INR",
        po_number="PO-1001",
    ):
        return order_service.create_draft(
            customer_ref="ACME Forgings",
            po_number=po_number,
            currency=currency,
            tax_type="domestic",
            tax_percent=tax_percent,
            payment_terms_days=payment_terms_days,
            lines=list(lines),
            actor_id=test_actor_id,
        )

    return _make


@pytest.fixture
def make_approved_order(make_draft_order, order_service, test_actor_id):
    """Create and approve an order."""

    def _make(**kwargs):
        draft = make_draft_order(**kwargs)
        return order_service.approve(draft.id, test_actor_id)

    return _make


@pytest.fixture
def make_issued_invoice(make_approved_order, invoice_service, test_actor_id):
    """
    Issue an invoice for ``quantity`` units of a single-line order.

    The default is 500 units @ 100.00 with 18% tax on a 1000-unit line:
    subtotal 50000.00, tax 9000.00, total 59000.00, due in 30 days.
    """

    def _make(quantity=500, ordered=1000, price=Decimal("100.00"), payment_terms_days=30):
        order = make_approved_order(
            lines=[LineItemInput("SHAFT-25", ordered, price)],
            payment_terms_days=payment_terms_days,
        )
        return invoice_service.create_and_issue(order.id, [(0, quantity)], test_actor_id)

    return _make
