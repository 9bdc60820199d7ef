"""
Module: ledger_kernel.models.documents
Responsibility: ORM persistence for the source documents and partner commissions
    whose posting and settlement status gate a period close.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - hidden_by_period_id is the single visibility tag for every document
      kind: set when the covering period closes, cleared when it reopens.
    - Documents dated inside a closed period cannot be created, edited or
      moved in/out of it; only hidden_by_period_id may change
      (db/immutability.py).

Audit relevance:
    Documents are owned by invoicing/commission collaborators.  This kernel
    reads their posting status and writes only the visibility tag.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class DocumentKind(str, Enum):
    """Kinds of source documents that post to the ledger."""

    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    COMMISSION_INVOICE = "commission_invoice"


class PostingStatus(str, Enum):
    """Whether a source document reached the ledger."""

    UNPOSTED = "unposted"
    POSTED = "posted"
    POSTING_FAILED = "posting_failed"


class CommissionStatus(str, Enum):
    """Settlement status of a partner commission."""

    PENDING = "pending"
    BILLED = "billed"
    PAID = "paid"


class SourceDocument(TrackedBase):
    """Sales, purchase or commission invoice as seen by the ledger."""

    __tablename__ = "source_documents"

    __table_args__ = (
        Index("idx_source_document_company_date", "company_id", "issue_date"),
        Index("idx_source_document_hidden", "hidden_by_period_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    kind: Mapped[DocumentKind] = mapped_column(
        String(30),
        nullable=False,
    )

    number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    issue_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    total: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    posting_status: Mapped[PostingStatus] = mapped_column(
        String(20),
        default=PostingStatus.UNPOSTED,
        nullable=False,
    )

    posting_error: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    ledger_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_entries.id"),
        nullable=True,
    )

    is_cancelled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    hidden_by_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<SourceDocument {self.kind} {self.number}: {self.posting_status}>"


class CommissionRecord(TrackedBase):
    """A partner commission owed by the company."""

    __tablename__ = "commission_records"

    __table_args__ = (
        Index("idx_commission_company_date", "company_id", "commission_date"),
        Index("idx_commission_hidden", "hidden_by_period_id"),
    )

    company_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    partner_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    commission_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    status: Mapped[CommissionStatus] = mapped_column(
        String(20),
        default=CommissionStatus.PENDING,
        nullable=False,
    )

    # Commission invoice that billed this commission
    invoice_document_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("source_documents.id"),
        nullable=True,
    )

    # Billed-but-unpaid is acceptable only when a payable was approved
    payable_approved: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    hidden_by_period_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<CommissionRecord {self.amount} {self.status}>"
