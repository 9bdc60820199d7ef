"""
Module: ledger_kernel.selectors.document_selector
Responsibility: SQL-backed implementations of the closing collaborator
    protocols (source document posting status, commission settlement, bank
    accounts, treasury movements), plus the default-listing queries that
    honour the hidden-by-period tag.
Architecture position: Kernel > Selectors.  Implements the Protocols declared
    in domain/collaborators.py over the reference tables in models/documents.py
    and models/treasury.py.

Invariants enforced:
    - Cancelled documents and cancelled movements are never reported.
    - Default listings exclude rows tagged hidden_by_period_id; callers opt in
      with include_hidden=True.
    - A movement or commission counts as booked only when its ledger entry
      is CONFIRMED.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import aliased

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.collaborators import (
    CommissionProblem,
    CommissionSettlementIssue,
    CommissionSettlementStatus,
    DocumentPostingStatus,
)
from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.domain.treasury import BankAccountInfo, TreasuryMovementInfo
from ledger_kernel.models.documents import (
    CommissionRecord,
    CommissionStatus,
    DocumentKind,
    PostingStatus,
    SourceDocument,
)
from ledger_kernel.models.ledger import LedgerEntry, LedgerEntryStatus
from ledger_kernel.models.treasury import BankAccount, MovementKind, TreasuryMovement
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class SourceDocumentInfo:
    id: UUID
    company_id: UUID
    kind: DocumentKind
    number: str
    issue_date: date
    total: Decimal
    posting_status: PostingStatus
    posting_error: str | None
    ledger_entry_id: UUID | None
    is_cancelled: bool
    hidden_by_period_id: UUID | None


@dataclass(frozen=True)
class CommissionInfo:
    id: UUID
    company_id: UUID
    partner_id: UUID
    commission_date: date
    amount: Decimal
    status: CommissionStatus
    invoice_document_id: UUID | None
    payable_approved: bool
    hidden_by_period_id: UUID | None


def _document_to_info(doc: SourceDocument) -> SourceDocumentInfo:
    return SourceDocumentInfo(
        id=doc.id,
        company_id=doc.company_id,
        kind=DocumentKind(doc.kind),
        number=doc.number,
        issue_date=doc.issue_date,
        total=round_money(doc.total),
        posting_status=PostingStatus(doc.posting_status),
        posting_error=doc.posting_error,
        ledger_entry_id=doc.ledger_entry_id,
        is_cancelled=doc.is_cancelled,
        hidden_by_period_id=doc.hidden_by_period_id,
    )


def _commission_to_info(record: CommissionRecord) -> CommissionInfo:
    return CommissionInfo(
        id=record.id,
        company_id=record.company_id,
        partner_id=record.partner_id,
        commission_date=record.commission_date,
        amount=round_money(record.amount),
        status=CommissionStatus(record.status),
        invoice_document_id=record.invoice_document_id,
        payable_approved=record.payable_approved,
        hidden_by_period_id=record.hidden_by_period_id,
    )


class DocumentSelector(BaseSelector):
    """Default listings of documents and commissions (visibility-aware)."""

    def list_documents(
        self,
        company_id: UUID,
        date_range: DateRange | None = None,
        kind: DocumentKind | None = None,
        include_hidden: bool = False,
    ) -> list[SourceDocumentInfo]:
        stmt = (
            select(SourceDocument)
            .where(SourceDocument.company_id == company_id)
            .order_by(SourceDocument.issue_date, SourceDocument.number)
        )
        if date_range is not None:
            stmt = stmt.where(
                SourceDocument.issue_date >= date_range.start,
                SourceDocument.issue_date <= date_range.end,
            )
        if kind is not None:
            stmt = stmt.where(SourceDocument.kind == kind.value)
        if not include_hidden:
            stmt = stmt.where(SourceDocument.hidden_by_period_id.is_(None))
        return [_document_to_info(d) for d in self.session.scalars(stmt)]

    def list_commissions(
        self,
        company_id: UUID,
        date_range: DateRange | None = None,
        include_hidden: bool = False,
    ) -> list[CommissionInfo]:
        stmt = (
            select(CommissionRecord)
            .where(CommissionRecord.company_id == company_id)
            .order_by(CommissionRecord.commission_date)
        )
        if date_range is not None:
            stmt = stmt.where(
                CommissionRecord.commission_date >= date_range.start,
                CommissionRecord.commission_date <= date_range.end,
            )
        if not include_hidden:
            stmt = stmt.where(CommissionRecord.hidden_by_period_id.is_(None))
        return [_commission_to_info(c) for c in self.session.scalars(stmt)]


class SqlSourceDocumentProvider(BaseSelector):
    """SourceDocumentProvider over the source_documents table."""

    def posting_status(
        self, company_id: UUID, date_range: DateRange,
    ) -> list[DocumentPostingStatus]:
        stmt = (
            select(SourceDocument)
            .where(
                SourceDocument.company_id == company_id,
                SourceDocument.issue_date >= date_range.start,
                SourceDocument.issue_date <= date_range.end,
                SourceDocument.is_cancelled.is_(False),
            )
            .order_by(SourceDocument.kind, SourceDocument.issue_date, SourceDocument.number)
        )
        return [
            DocumentPostingStatus(
                kind=DocumentKind(doc.kind),
                document_id=doc.id,
                number=doc.number,
                issue_date=doc.issue_date,
                status=PostingStatus(doc.posting_status),
                total=round_money(doc.total),
                error=doc.posting_error,
            )
            for doc in self.session.scalars(stmt)
        ]


def _settlement_issue(
    record: CommissionRecord, problem: CommissionProblem,
) -> CommissionSettlementIssue:
    return CommissionSettlementIssue(
        commission_id=record.id,
        partner_id=record.partner_id,
        amount=round_money(record.amount),
        problem=problem,
    )


class SqlCommissionProvider(BaseSelector):
    """
    CommissionProvider over commission_records.

    A commission blocks the close when it is
      (a) still PENDING (unbilled),
      (b) BILLED, unpaid, and without an approved payable,
      (c) BILLED or PAID but its invoice has no CONFIRMED ledger entry.
    (b) and (c) are reported independently.
    """

    def settlement_status(
        self, company_id: UUID, date_range: DateRange,
    ) -> CommissionSettlementStatus:
        invoice = aliased(SourceDocument)
        entry = aliased(LedgerEntry)
        rows = self.session.execute(
            select(CommissionRecord, entry.status)
            .outerjoin(invoice, CommissionRecord.invoice_document_id == invoice.id)
            .outerjoin(entry, invoice.ledger_entry_id == entry.id)
            .where(
                CommissionRecord.company_id == company_id,
                CommissionRecord.commission_date >= date_range.start,
                CommissionRecord.commission_date <= date_range.end,
            )
            .order_by(CommissionRecord.commission_date)
        ).all()

        issues: list[CommissionSettlementIssue] = []
        for record, entry_status in rows:
            status = CommissionStatus(record.status)
            if status == CommissionStatus.PENDING:
                issues.append(_settlement_issue(record, CommissionProblem.UNBILLED))
                continue
            if status == CommissionStatus.BILLED and not record.payable_approved:
                issues.append(_settlement_issue(record, CommissionProblem.BILLED_UNPAID))
            if entry_status is None or LedgerEntryStatus(entry_status) != LedgerEntryStatus.CONFIRMED:
                issues.append(_settlement_issue(record, CommissionProblem.MISSING_ENTRY))

        return CommissionSettlementStatus(issues=tuple(issues))


class SqlBankAccountProvider(BaseSelector):
    """BankAccountProvider over bank_accounts."""

    def active_accounts(self, company_id: UUID) -> list[BankAccountInfo]:
        stmt = (
            select(BankAccount)
            .where(
                BankAccount.company_id == company_id,
                BankAccount.is_active.is_(True),
            )
            .order_by(BankAccount.name)
        )
        return [
            BankAccountInfo(
                id=acct.id,
                name=acct.name,
                ledger_account_id=acct.ledger_account_id,
                opening_balance=round_money(acct.opening_balance),
                recorded_balance=round_money(acct.recorded_balance),
            )
            for acct in self.session.scalars(stmt)
        ]


class SqlTreasuryMovementProvider(BaseSelector):
    """TreasuryMovementProvider over treasury_movements."""

    def movements(
        self, account_id: UUID, date_range: DateRange,
    ) -> list[TreasuryMovementInfo]:
        rows = self.session.scalars(
            select(TreasuryMovement)
            .where(
                TreasuryMovement.bank_account_id == account_id,
                TreasuryMovement.movement_date >= date_range.start,
                TreasuryMovement.movement_date <= date_range.end,
                TreasuryMovement.is_cancelled.is_(False),
            )
            .order_by(TreasuryMovement.movement_date)
        )
        return [
            TreasuryMovementInfo(
                id=movement.id,
                bank_account_id=movement.bank_account_id,
                movement_date=movement.movement_date,
                kind=MovementKind(movement.kind),
                amount=round_money(movement.amount),
                linked_entry_id=movement.linked_entry_id,
                description=movement.description,
            )
            for movement in rows
        ]
