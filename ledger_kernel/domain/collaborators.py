"""
Collaborator protocols consumed by the closing workflow.

Responsibility:
    Typed interfaces for everything the closing validator reads from (and
    the close transition writes to) outside the ledger itself: source
    document posting status, commission settlement, bank accounts, treasury
    movements and document visibility.  Each returns structured values,
    never raw key-value maps.

Architecture position:
    Kernel > Domain.  SQL-backed implementations live in
    ``ledger_kernel.selectors.document_selector`` and
    ``ledger_kernel.services.document_visibility_service``; tests and
    integrators may substitute their own.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Protocol
from uuid import UUID

from ledger_kernel.domain.dtos import DateRange
from ledger_kernel.domain.treasury import BankAccountInfo, TreasuryMovementInfo
from ledger_kernel.models.documents import DocumentKind, PostingStatus


@dataclass(frozen=True)
class DocumentPostingStatus:
    """Posting status of one source document."""

    kind: DocumentKind
    document_id: UUID
    number: str
    issue_date: date
    status: PostingStatus
    total: Decimal
    error: str | None = None

    @property
    def needs_attention(self) -> bool:
        return self.status in (PostingStatus.UNPOSTED, PostingStatus.POSTING_FAILED)


class CommissionProblem(str, Enum):
    """Why a commission blocks a period close."""

    UNBILLED = "unbilled"
    BILLED_UNPAID = "billed_unpaid"
    MISSING_ENTRY = "missing_entry"


@dataclass(frozen=True)
class CommissionSettlementIssue:
    commission_id: UUID
    partner_id: UUID
    amount: Decimal
    problem: CommissionProblem


@dataclass(frozen=True)
class CommissionSettlementStatus:
    """Unsettled commissions in a date range, itemized."""

    issues: tuple[CommissionSettlementIssue, ...] = ()

    def _count(self, problem: CommissionProblem) -> int:
        return sum(1 for i in self.issues if i.problem == problem)

    @property
    def pending_count(self) -> int:
        return self._count(CommissionProblem.UNBILLED)

    @property
    def billed_unpaid_count(self) -> int:
        return self._count(CommissionProblem.BILLED_UNPAID)

    @property
    def missing_entry_count(self) -> int:
        return self._count(CommissionProblem.MISSING_ENTRY)

    @property
    def is_settled(self) -> bool:
        return not self.issues


class SourceDocumentProvider(Protocol):
    def posting_status(
        self, company_id: UUID, date_range: DateRange,
    ) -> list[DocumentPostingStatus]: ...


class CommissionProvider(Protocol):
    def settlement_status(
        self, company_id: UUID, date_range: DateRange,
    ) -> CommissionSettlementStatus: ...


class BankAccountProvider(Protocol):
    def active_accounts(self, company_id: UUID) -> list[BankAccountInfo]: ...


class TreasuryMovementProvider(Protocol):
    def movements(
        self, account_id: UUID, date_range: DateRange,
    ) -> list[TreasuryMovementInfo]: ...


@dataclass(frozen=True)
class VisibilityChange:
    """How many rows a hide/reveal call touched."""

    documents: int
    commissions: int


class DocumentVisibilityGateway(Protocol):
    """Writes the ``hidden_by_period_id`` tag on documents of a period."""

    def hide_in_range(
        self, company_id: UUID, date_range: DateRange, period_id: UUID,
    ) -> VisibilityChange: ...

    def reveal_for_period(
        self, company_id: UUID, date_range: DateRange, period_id: UUID,
    ) -> VisibilityChange: ...
