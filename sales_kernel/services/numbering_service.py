"""
NumberingService -- yearly document numbers from atomic counter rows.

Responsibility:
    Allocates ``WO-YYYY-NNNNN`` / ``INV-YYYY-NNNNN`` numbers.  Each (kind,
    year) pair owns one row in ``sequence_counters``; allocation increments
    and reads that row in a single statement.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  Called by the
    work order and invoice services through the data-access gateway.

Invariants enforced:
    - Numbers are strictly increasing per (kind, year) and never reused.
      The aggregate-max-plus-one pattern is never used; the counter row is
      the sole source of truth.
    - The increment is part of the caller's transaction.  A rolled-back
      allocation leaves a gap rather than handing the value out twice.
    - The counter never passes ``max_value`` (99,999 by default).

Failure modes:
    - ExhaustedSequenceError once ``max_value`` numbers have been issued.
    - IntegrityError on a concurrent first-use insert is absorbed: the
      savepoint is rolled back and the increment retried.
"""

from sqlalchemy import String, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from sales_kernel.db.base import Base
from sales_kernel.domain.numbering import (
    MAX_SEQUENCE,
    DocumentKind,
    format_number,
    sequence_key,
)
from sales_kernel.exceptions import ExhaustedSequenceError
from sales_kernel.logging_config import get_logger

logger = get_logger("services.numbering")


class SequenceCounter(Base):
    """
    Sequence counter table.

    One row per (kind, year), e.g. ``WO:2025``; ``current_value`` is the
    last value handed out.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        nullable=False,
        default=0,
    )


class NumberingService:
    """
    Service for allocating document numbers.

    Usage:
        numbers = NumberingService(session)
        wo_number = numbers.next_number(DocumentKind.WORK_ORDER, 2025)
        # "WO-2025-00001"
    """

    def __init__(self, session: Session, max_value: int = MAX_SEQUENCE):
        self._session = session
        self._max_value = max_value

    def next_value(self, kind: DocumentKind, year: int | None) -> int:
        """
        Increment the (kind, year) counter and return the new value.

        Postconditions:
            - 1 <= result <= max_value.
            - result is greater than every value previously returned for
              this (kind, year).

        Raises:
            ExhaustedSequenceError: The counter already reached max_value.
        """
        key = sequence_key(kind, year)

        value = self._increment(key)
        if value is not None:
            return self._allocated(key, value)

        existing = self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == key)
            .with_for_update()
        ).scalar_one_or_none()
        if existing is not None:
            self._exhausted(kind, year, key)

        # First use of this (kind, year).  Another transaction may create the
        # row at the same moment; the savepoint keeps our other work intact.
        savepoint = self._session.begin_nested()
        try:
            self._session.add(SequenceCounter(name=key, current_value=1))
            self._session.flush()
            savepoint.commit()
            return self._allocated(key, 1)
        except IntegrityError:
            logger.debug(
                "sequence_counter_race_retry",
                extra={"sequence_name": key},
            )
            savepoint.rollback()

        value = self._increment(key)
        if value is None:
            self._exhausted(kind, year, key)
        return self._allocated(key, value)

    def next_number(self, kind: DocumentKind, year: int | None) -> str:
        """Allocate and format the next number, e.g. ``INV-2025-00012``."""
        return format_number(kind, year, self.next_value(kind, year))

    def current_value(self, kind: DocumentKind, year: int | None) -> int | None:
        """Last value handed out, or None if the counter was never used."""
        return self._session.execute(
            select(SequenceCounter.current_value)
            .where(SequenceCounter.name == sequence_key(kind, year))
        ).scalar_one_or_none()

    def reset(self, kind: DocumentKind, year: int | None, value: int = 0) -> None:
        """
        Set a counter to a specific value.

        WARNING: Only for tests and data migrations.  Lowering a counter in
        production hands out duplicate numbers.
        """
        key = sequence_key(kind, year)
        updated = self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == key)
            .values(current_value=value)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()
        if updated is None:
            self._session.add(SequenceCounter(name=key, current_value=value))
            self._session.flush()
        logger.warning(
            "sequence_counter_reset",
            extra={"sequence_name": key, "value": value},
        )

    def _increment(self, key: str) -> int | None:
        return self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == key)
            .where(SequenceCounter.current_value < self._max_value)
            .values(current_value=SequenceCounter.current_value + 1)
            .returning(SequenceCounter.current_value)
            .execution_options(synchronize_session=False)
        ).scalar_one_or_none()

    def _allocated(self, key: str, value: int) -> int:
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": key, "value": value},
        )
        return value

    def _exhausted(self, kind: DocumentKind, year: int | None, key: str) -> None:
        logger.error(
            "sequence_exhausted",
            extra={"sequence_name": key, "max_value": self._max_value},
        )
        raise ExhaustedSequenceError(kind.value, year, self._max_value)
