"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for fiscal years and their accounting periods --
    the date ranges that accept or refuse postings.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - A company's fiscal years never overlap; the periods of a year are
      contiguous and partition it (checked by PeriodService.create_fiscal_year).
    - allows_entries is True only while state is OPEN.
    - State writes go through a compare-and-set on (version, state) issued by
      PeriodService; a lost race surfaces as ConcurrentStateChangeError.

Failure modes:
    - PeriodClosedError when writing into a non-open period.
    - PeriodNotFoundError when no period covers a date.

Audit relevance:
    Every state change of a period or year is mirrored by an append-only
    ClosureRecord (see models/closing.py).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
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


class PeriodState(str, Enum):
    """Lifecycle state shared by fiscal years and accounting periods.

    Contract: OPEN -> CLOSED -> CLOSED_FINAL; CLOSED -> OPEN via reopen.
    CLOSED_FINAL is terminal.
    """

    OPEN = "open"
    CLOSED = "closed"
    CLOSED_FINAL = "closed_final"


class FiscalYear(TrackedBase):
    """A company's fiscal year, partitioned into accounting periods."""

    __tablename__ = "fiscal_years"

    __table_args__ = (
        UniqueConstraint("company_id", "year", name="uq_fiscal_year_company_year"),
        Index("idx_fiscal_year_dates", "company_id", "start_date", "end_date"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    state: Mapped[PeriodState] = mapped_column(
        String(20),
        default=PeriodState.OPEN,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reopened_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopen_reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    periods: Mapped[list["AccountingPeriod"]] = relationship(
        back_populates="fiscal_year",
        lazy="selectin",
        order_by="AccountingPeriod.period_number",
    )

    def __repr__(self) -> str:
        return f"<FiscalYear {self.year}: {self.state}>"


class AccountingPeriod(TrackedBase):
    """
    A contiguous date range within a fiscal year.

    Contract:
        Postings dated inside the period are accepted only while the period
        is OPEN.  Totals and close metadata are written by the close
        transition in the same statement that flips the state.

    Non-goals:
        - This model does NOT guard its own transitions; PeriodService does,
          through compare-and-set updates on ``version``.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint(
            "fiscal_year_id", "period_number", name="uq_period_year_number"
        ),
        Index("idx_period_company_dates", "company_id", "start_date", "end_date"),
        Index("idx_period_state", "state"),
    )

    fiscal_year_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("fiscal_years.id"),
        nullable=False,
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    period_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # e.g. "January 2025"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    state: Mapped[PeriodState] = mapped_column(
        String(20),
        default=PeriodState.OPEN,
        nullable=False,
    )

    allows_entries: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    total_debits: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    total_credits: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    entry_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopened_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reopened_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    reopen_reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Compare-and-set counter, incremented by every state transition
    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    fiscal_year: Mapped["FiscalYear"] = relationship(
        back_populates="periods",
    )

    def __repr__(self) -> str:
        return f"<AccountingPeriod {self.name}: {self.state}>"

    @property
    def is_open(self) -> bool:
        return self.state == PeriodState.OPEN

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period (inclusive)."""
        return self.start_date <= check_date <= self.end_date
