"""
Data Transfer Objects for the ledger kernel.

Responsibility:
    Immutable value objects that cross the boundary between the ORM layer
    and callers: posting specifications coming in, entry/period/closure
    snapshots going out.  Services convert ORM rows with ``_to_dto``
    helpers so callers never hold live, session-bound objects.

Architecture position:
    Kernel > Domain.  Imports status enums from models (string-valued,
    persisted as-is); holds no session and performs no I/O.

Invariants enforced:
    - DateRange.start <= DateRange.end.
    - PostingSpec amounts are Decimal, never float.
    - Amounts on *Info objects are quantized to currency precision.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from ledger_kernel.models.closing import ClosureAction, ClosureScope
from ledger_kernel.models.fiscal_period import PeriodState
from ledger_kernel.models.ledger import LedgerEntryStatus

_ZERO = Decimal("0")


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def contains(self, check_date: date) -> bool:
        return self.start <= check_date <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingSpec:
    """
    Requested debit or credit line for a new or updated ledger entry.

    Exactly one of ``debit`` / ``credit`` must be non-zero; LedgerService
    rejects anything else with InvalidPostingError.
    """

    account_id: UUID
    debit: Decimal = _ZERO
    credit: Decimal = _ZERO
    description: str | None = None
    counterparty_id: UUID | None = None
    cost_center: str | None = None

    @classmethod
    def debit_line(cls, account_id: UUID, amount: Decimal, **kwargs) -> PostingSpec:
        return cls(account_id=account_id, debit=amount, credit=_ZERO, **kwargs)

    @classmethod
    def credit_line(cls, account_id: UUID, amount: Decimal, **kwargs) -> PostingSpec:
        return cls(account_id=account_id, debit=_ZERO, credit=amount, **kwargs)


@dataclass(frozen=True)
class EntryPatch:
    """Changes to a draft entry.  ``None`` leaves the field untouched."""

    entry_date: date | None = None
    description: str | None = None
    reference: str | None = None
    postings: tuple[PostingSpec, ...] | None = None


# ---------------------------------------------------------------------------
# Ledger outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PostingInfo:
    id: UUID
    account_id: UUID
    debit: Decimal
    credit: Decimal
    line_seq: int
    description: str | None = None
    counterparty_id: UUID | None = None
    cost_center: str | None = None


@dataclass(frozen=True)
class LedgerEntryInfo:
    """Read-only snapshot of a ledger entry and its postings."""

    id: UUID
    company_id: UUID
    number: str
    prefix: str
    sequence_number: int
    entry_date: date
    description: str
    status: LedgerEntryStatus
    postings: tuple[PostingInfo, ...]
    reference: str | None = None
    support_document_id: UUID | None = None
    confirmed_at: datetime | None = None
    confirmed_by_id: UUID | None = None
    voided_at: datetime | None = None
    voided_by_id: UUID | None = None

    @property
    def total_debits(self) -> Decimal:
        return sum((p.debit for p in self.postings), _ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((p.credit for p in self.postings), _ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits


@dataclass(frozen=True)
class AccountLedgerLine:
    """One confirmed posting in an account's ledger book, with running balance."""

    entry_id: UUID
    entry_number: str
    entry_date: date
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


@dataclass(frozen=True)
class AccountLedger:
    """
    General-ledger book for one account over a date range.

    Balances follow the account's natural sign: debit-positive for
    asset/expense, credit-positive for liability/equity/income.
    """

    account_id: UUID
    account_code: str
    account_name: str
    date_range: DateRange
    opening_balance: Decimal
    lines: tuple[AccountLedgerLine, ...]
    total_debits: Decimal
    total_credits: Decimal
    closing_balance: Decimal


@dataclass(frozen=True)
class PeriodTotals:
    """Confirmed-entry totals over a period's date range."""

    total_debits: Decimal
    total_credits: Decimal
    entry_count: int

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @classmethod
    def zero(cls) -> PeriodTotals:
        return cls(total_debits=Decimal("0.00"), total_credits=Decimal("0.00"), entry_count=0)


# ---------------------------------------------------------------------------
# Period outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccountingPeriodInfo:
    """Read-only snapshot of an accounting period."""

    id: UUID
    fiscal_year_id: UUID
    company_id: UUID
    period_number: int
    name: str
    start_date: date
    end_date: date
    state: PeriodState
    allows_entries: bool
    version: int
    totals: PeriodTotals = field(default_factory=PeriodTotals.zero)
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    reopened_at: datetime | None = None
    reopened_by_id: UUID | None = None
    reopen_reason: str | None = None

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)

    @property
    def is_open(self) -> bool:
        return self.state == PeriodState.OPEN


@dataclass(frozen=True)
class FiscalYearInfo:
    """Read-only snapshot of a fiscal year and its periods."""

    id: UUID
    company_id: UUID
    year: int
    start_date: date
    end_date: date
    state: PeriodState
    version: int
    periods: tuple[AccountingPeriodInfo, ...] = ()
    description: str | None = None
    closed_at: datetime | None = None
    closed_by_id: UUID | None = None
    reopened_at: datetime | None = None
    reopened_by_id: UUID | None = None
    reopen_reason: str | None = None

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


# ---------------------------------------------------------------------------
# Closing outputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BalanceSnapshotInfo:
    id: UUID
    period_id: UUID
    closure_record_id: UUID
    bank_account_id: UUID
    computed_balance: Decimal
    recorded_balance: Decimal
    difference: Decimal
    captured_at: datetime


@dataclass(frozen=True)
class ClosureRecordInfo:
    """Read-only snapshot of one closure audit record."""

    id: UUID
    company_id: UUID
    record_seq: int
    scope: ClosureScope
    fiscal_year_id: UUID
    action: ClosureAction
    actor_id: UUID
    recorded_at: datetime
    prior_state: PeriodState
    new_state: PeriodState
    totals: PeriodTotals
    period_id: UUID | None = None
    reason: str | None = None
    notes: str | None = None
    snapshots: tuple[BalanceSnapshotInfo, ...] = ()


@dataclass(frozen=True)
class ClosedPeriodSummary:
    """What a successful close produced."""

    period: AccountingPeriodInfo
    closure_record: ClosureRecordInfo
    snapshots: tuple[BalanceSnapshotInfo, ...]
    hidden_document_count: int
    hidden_commission_count: int
