"""
BaseService -- common constructor for the write-side services.

Services receive a SQLAlchemy ``Session`` and persist through
``session.flush()`` only.  The caller owns commit/rollback (see
``db.engine.session_scope``), so a status change and its approval log row
land in the same transaction or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session

from procurement_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Non-goals:
        - Does NOT call ``session.commit()`` or ``session.rollback()``.
        - Does NOT serve read models; those live in ``selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
