"""
Module: ledger_kernel.models.ledger
Responsibility: ORM persistence for ledger entries and their postings -- the
    double-entry record every closing check is evaluated against.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - (company_id, prefix, sequence_number) is unique; numbers are allocated
      by SequenceService from a locked counter row, never MAX()+1.
    - A CONFIRMED entry satisfies sum(debit) == sum(credit) exactly.
    - DRAFT is the only mutable state.  CONFIRMED may only move to VOIDED.
      VOIDED is terminal.  Enforced by LedgerService and by
      db/immutability.py.
    - Each posting has exactly one non-zero side; both sides non-negative.

Failure modes:
    - IntegrityError on duplicate (company_id, prefix, sequence_number).
    - ImmutabilityViolationError on modification of a confirmed/voided entry.

Audit relevance:
    Voiding never deletes or alters postings: the voided entry stays in the
    ledger with its voided_at/voided_by_id, excluded from active balances.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
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

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class LedgerEntryStatus(str, Enum):
    """Lifecycle status of a ledger entry."""

    DRAFT = "draft"
    CONFIRMED = "confirmed"
    VOIDED = "voided"


class LedgerEntry(TrackedBase):
    """
    A balanced double-entry bookkeeping record.

    Contract:
        Created in DRAFT by LedgerService.create_entry, confirmed by
        confirm_entry, voided by void_entry.  Totals are derived from
        postings, never stored.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "company_id", "prefix", "sequence_number",
            name="uq_ledger_entry_number",
        ),
        Index("idx_ledger_entry_company_date", "company_id", "entry_date"),
        Index("idx_ledger_entry_status", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    prefix: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    sequence_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Formatted number, e.g. "AS-000042"
    number: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    reference: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    support_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    status: Mapped[LedgerEntryStatus] = mapped_column(
        String(20),
        default=LedgerEntryStatus.DRAFT,
        nullable=False,
    )

    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    confirmed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    voided_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    voided_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    postings: Mapped[list["Posting"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Posting.line_seq",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.number} status={self.status}>"

    @property
    def is_draft(self) -> bool:
        return self.status == LedgerEntryStatus.DRAFT

    @property
    def is_confirmed(self) -> bool:
        return self.status == LedgerEntryStatus.CONFIRMED

    @property
    def total_debits(self) -> Decimal:
        return sum((p.debit for p in self.postings), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((p.credit for p in self.postings), Decimal("0"))


class Posting(TrackedBase):
    """
    One debit or credit line within a ledger entry.

    Guarantees:
        - Exactly one of debit/credit is non-zero (validated by LedgerService).
        - Immutable once the parent entry leaves DRAFT.
    """

    __tablename__ = "postings"

    __table_args__ = (
        Index("idx_posting_entry", "entry_id"),
        Index("idx_posting_account", "account_id"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    debit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    credit: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Optional third-party tag (customer, vendor, partner)
    counterparty_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    cost_center: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    entry: Mapped["LedgerEntry"] = relationship(
        back_populates="postings",
    )

    account: Mapped["Account"] = relationship(
        back_populates="postings",
    )

    def __repr__(self) -> str:
        return f"<Posting D={self.debit} C={self.credit} account={self.account_id}>"
