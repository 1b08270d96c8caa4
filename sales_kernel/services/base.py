"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for every
    service in the kernel.  Services receive a SQLAlchemy ``Session`` and use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain layer.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's transaction
      and never commit or roll back the caller's transaction themselves.
    - Atomic operations: each mutating operation runs inside its own
      savepoint (``atomic()``), so a failure half-way through leaves no
      partial writes even when the caller keeps its outer transaction open.

Failure modes:
    - A subclass that calls ``session.commit()`` breaks the atomicity of
      multi-step operations such as approve-and-derive.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from sales_kernel.config import KernelConfig
from sales_kernel.domain.clock import Clock, SystemClock
from sales_kernel.services.data_access import OrderDataGateway


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Non-goals:
        - Does NOT manage the outer transaction lifecycle.
        - Does NOT provide read-only views -- those live in
          ``sales_kernel/selectors/``.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: KernelConfig | None = None,
    ):
        """
        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source.  Defaults to the system clock.
            config: Kernel settings.  Defaults to KernelConfig().
        """
        self.session = session
        self.clock = clock or SystemClock()
        self.config = config or KernelConfig()
        self.gateway = OrderDataGateway(session, max_sequence=self.config.max_sequence)

    @contextmanager
    def atomic(self) -> Generator[None, None, None]:
        """Run a block inside a savepoint; roll it back on any exception."""
        with self.session.begin_nested():
            yield
