"""
Module: ledger_kernel.models.closing
Responsibility: ORM persistence for the closing audit trail -- closure records
    for every close/reopen/finalize action and the bank balance snapshots
    captured by a successful close.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: ClosureRecord and BalanceSnapshot rows are never updated
      or deleted (db/immutability.py raises ImmutabilityViolationError).
    - record_seq is strictly monotonic per company (SequenceService).
    - One BalanceSnapshot per active bank account per close event; reopening
      never removes snapshots of earlier closes.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE through the ORM.

Audit relevance:
    ClosureRecord is the authoritative history of the period lifecycle:
    who, when, why, from which state to which state, and the totals at that
    moment.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString


class ClosureScope(str, Enum):
    """What a closure record is about."""

    PERIOD = "period"
    FISCAL_YEAR = "fiscal_year"


class ClosureAction(str, Enum):
    """Lifecycle action recorded by a closure record."""

    CLOSE = "close"
    REOPEN = "reopen"
    FINALIZE = "finalize"


class ClosureRecord(TrackedBase):
    """Immutable audit-log entry for a close, reopen or finalize action."""

    __tablename__ = "closure_records"

    __table_args__ = (
        UniqueConstraint("company_id", "record_seq", name="uq_closure_record_seq"),
        Index("idx_closure_company", "company_id", "recorded_at"),
        Index("idx_closure_period", "period_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    record_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    scope: Mapped[ClosureScope] = mapped_column(
        String(20),
        nullable=False,
    )

    period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=True,
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    action: Mapped[ClosureAction] = mapped_column(
        String(20),
        nullable=False,
    )

    actor_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    prior_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    new_state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    total_debits: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    total_credits: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    entry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    snapshots: Mapped[list["BalanceSnapshot"]] = relationship(
        back_populates="closure_record",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<ClosureRecord #{self.record_seq} {self.action} {self.prior_state}->{self.new_state}>"


class BalanceSnapshot(TrackedBase):
    """Point-in-time bank account balance captured by a period close."""

    __tablename__ = "balance_snapshots"

    __table_args__ = (
        UniqueConstraint(
            "closure_record_id", "bank_account_id",
            name="uq_snapshot_record_account",
        ),
        Index("idx_snapshot_period", "period_id"),
    )

    period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=False,
    )

    closure_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("closure_records.id"),
        nullable=False,
    )

    bank_account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    computed_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    recorded_balance: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    difference: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    captured_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    closure_record: Mapped["ClosureRecord"] = relationship(
        back_populates="snapshots",
    )

    def __repr__(self) -> str:
        return f"<BalanceSnapshot account={self.bank_account_id} diff={self.difference}>"
