"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly monotonically increasing numbers for ledger entries
    (one sequence per company + prefix) and closure records (one sequence
    per company).  Uses a dedicated counter table with row-level locking
    (``SELECT ... FOR UPDATE``) to guarantee uniqueness and ordering under
    concurrent access.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    Called by LedgerService and ClosureRecorder.

Invariants enforced:
    - Gap-free under normal operation: the locked counter row is the sole
      source of truth for the next value.  MAX()+1 is never used.
    - Transactional: the increment is only visible after the caller's
      transaction commits.  Rollback returns the value.

Failure modes:
    - IntegrityError: concurrent counter creation race (handled via
      savepoint rollback and retry).
"""

from uuid import UUID

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from ledger_kernel.db.base import Base
from ledger_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "ledger_entry:<company>:AS", "closure_record:<company>"
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic per sequence name via locked counter row.
        - Does NOT call ``session.commit()`` -- caller controls boundaries.
    """

    LEDGER_ENTRY = "ledger_entry"
    CLOSURE_RECORD = "closure_record"

    def __init__(self, session: Session):
        self._session = session

    @classmethod
    def ledger_entry_sequence(cls, company_id: UUID, prefix: str) -> str:
        return f"{cls.LEDGER_ENTRY}:{company_id}:{prefix}"

    @classmethod
    def closure_record_sequence(cls, company_id: UUID) -> str:
        return f"{cls.CLOSURE_RECORD}:{company_id}"

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - The caller is within an active database transaction.

        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this sequence name.
            - The counter row is locked until the transaction completes.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use of this sequence.  Another transaction may create it
            # at the same time, so insert under a savepoint.
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
                counter = self._lock_counter(sequence_name)
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
        """Current value of a sequence without incrementing, or None if unused."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None
