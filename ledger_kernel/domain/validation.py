"""
Closing validation report types.

Responsibility:
    The itemized verdict produced by ClosingValidator and the Result type
    returned by ``close_period``.  Every issue names the rule it violates
    and the offending document, entry, commission, movement or account, so
    callers never parse messages.

Architecture position:
    Kernel > Domain -- frozen dataclasses only, zero I/O.

Invariants enforced:
    - A report passes iff it has zero issues.
    - A ClosePeriodResult is either a success (summary, no report) or a
      failure (report, no summary), never both.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.dtos import ClosedPeriodSummary, DateRange, PeriodTotals
from ledger_kernel.domain.treasury import ReconciliationResult


class ClosingRule(str, Enum):
    """Closing checks, in the order they run."""

    POSTING_COMPLETENESS = "posting_completeness"
    ENTRY_CONFIRMATION = "entry_confirmation"
    DOUBLE_ENTRY_BALANCE = "double_entry_balance"
    COMMISSION_SETTLEMENT = "commission_settlement"
    TREASURY_RECONCILIATION = "treasury_reconciliation"


class SubjectKind(str, Enum):
    """What a validation issue points at."""

    SALES_INVOICE = "sales_invoice"
    PURCHASE_INVOICE = "purchase_invoice"
    COMMISSION_INVOICE = "commission_invoice"
    LEDGER_ENTRY = "ledger_entry"
    PERIOD = "period"
    COMMISSION = "commission"
    BANK_ACCOUNT = "bank_account"
    TREASURY_MOVEMENT = "treasury_movement"


@dataclass(frozen=True)
class ValidationIssue:
    """One violated closing rule for one subject."""

    rule: ClosingRule
    subject_kind: SubjectKind
    subject_id: UUID
    description: str
    subject_ref: str | None = None
    amount: Decimal | None = None


@dataclass(frozen=True)
class ValidationReport:
    """
    Accumulated result of every closing check for a period.

    ``totals`` and ``reconciliation`` are carried so a passing close can
    persist exactly the figures it validated.
    """

    period_id: UUID
    company_id: UUID
    date_range: DateRange
    issues: tuple[ValidationIssue, ...]
    totals: PeriodTotals
    reconciliation: ReconciliationResult
    validated_at: datetime

    @property
    def passed(self) -> bool:
        return not self.issues

    def issues_for(self, rule: ClosingRule) -> tuple[ValidationIssue, ...]:
        return tuple(i for i in self.issues if i.rule == rule)

    def failed_rules(self) -> tuple[ClosingRule, ...]:
        seen: list[ClosingRule] = []
        for issue in self.issues:
            if issue.rule not in seen:
                seen.append(issue.rule)
        return tuple(seen)


@dataclass(frozen=True)
class ClosePeriodResult:
    """Result of ``close_period``: a summary on success, a report on failure."""

    period_id: UUID
    summary: ClosedPeriodSummary | None = None
    report: ValidationReport | None = None

    def __post_init__(self) -> None:
        if (self.summary is None) == (self.report is None):
            raise ValueError("ClosePeriodResult needs exactly one of summary or report")

    @classmethod
    def success(cls, summary: ClosedPeriodSummary) -> ClosePeriodResult:
        return cls(period_id=summary.period.id, summary=summary)

    @classmethod
    def failure(cls, report: ValidationReport) -> ClosePeriodResult:
        return cls(period_id=report.period_id, report=report)

    @property
    def is_success(self) -> bool:
        return self.summary is not None

    def raise_for_failure(self) -> ClosedPeriodSummary:
        """Return the summary, or raise ValidationFailureError with the report."""
        if self.summary is None:
            from ledger_kernel.exceptions import ValidationFailureError

            raise ValidationFailureError(self.report)
        return self.summary
