"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Allocates strictly increasing integers per named counter and formats
    the year-scoped document codes (``AGR-2025-001``, ``RCP-2025-0001``).
    The counter row is locked with ``SELECT ... FOR UPDATE``; the
    aggregate-max-plus-one pattern is never used.

Invariants enforced:
    - Monotonic and collision-free under concurrent creation: the locked
      counter row is the sole source of truth for the next value.
    - Transactional: an allocation only becomes visible when the caller
      commits.  A rollback returns the value.

Failure modes:
    - IntegrityError on concurrent counter creation is handled with a
      savepoint rollback and a locked re-read.
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from procurement_kernel.db.base import Base
from procurement_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """One row per named sequence, e.g. ``AGR:2025`` or ``approval_log``."""

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)


class SequenceService:
    """
    Contract:
        ``next_value(name)`` returns an integer strictly greater than any
        value previously committed for ``name``.

    Non-goals:
        - Does NOT call ``session.commit()``.

    Usage:
        with session_scope() as session:
            code = SequenceService(session).next_code("AGR", 2025, 3)
    """

    APPROVAL_LOG = "approval_log"

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Lock the counter row (creating it on first use), increment it and
        return the new value.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use.  Another transaction may create the same row
            # concurrently; the savepoint keeps the caller's work intact.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def next_code(self, prefix: str, year: int, width: int) -> str:
        """
        Next year-scoped document code.

        One counter per (prefix, year), so numbering restarts at 1 each
        year: ``next_code("AGR", 2025, 3)`` -> ``AGR-2025-001``.  Values
        beyond ``width`` digits are not truncated.
        """
        value = self.next_value(f"{prefix}:{year}")
        return f"{prefix}-{year}-{value:0{width}d}"
