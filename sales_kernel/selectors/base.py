"""
Module: sales_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - Selectors take no row locks; derived states such as ``overdue`` are
      recomputed on every read.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
"""

from abc import ABC

from sqlalchemy.orm import Session

from sales_kernel.domain.clock import Clock, SystemClock


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
