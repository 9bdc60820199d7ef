"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: kernel services flush within the caller's
    transaction and never commit or rollback themselves.  The caller
    (PeriodCloseService, JournalService, or a test harness) owns
    commit/rollback, which is what makes a period close atomic.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Does NOT provide query-only methods -- those belong in
          ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
