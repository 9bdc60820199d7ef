"""
ledger_services.closing_validator -- may this period be closed?

Responsibility:
    Runs every closing check for one accounting period and returns a single
    itemized ValidationReport.  Checks run in a fixed order and every
    failure is accumulated; nothing short-circuits.

        1. posting_completeness     no UNPOSTED / POSTING_FAILED documents
        2. entry_confirmation       no DRAFT ledger entries
        3. double_entry_balance     confirmed debits == credits, exactly
        4. commission_settlement    no unbilled / unpaid / unbooked commissions
        5. treasury_reconciliation  bank balances within tolerance and every
                                    movement linked to a confirmed entry

Architecture position:
    Services -- read-only orchestration over kernel selectors, collaborator
    providers and TreasuryReconciliationChecker.  Called by
    PeriodCloseService before the write phase and by ``preview_close``.

Invariants enforced:
    - Read-only: never flushes or commits.
    - The report carries the PeriodTotals and ReconciliationResult it was
      computed from, so a passing close persists exactly those figures.
    - Each issue names its rule, subject kind and subject id.

Failure modes:
    - PeriodNotFoundError: unknown period id.
    - Provider errors propagate unchanged.
"""

from __future__ import annotations

import time
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.collaborators import (
    CommissionProblem,
    CommissionProvider,
    SourceDocumentProvider,
)
from ledger_kernel.domain.dtos import AccountingPeriodInfo, PeriodTotals
from ledger_kernel.domain.treasury import ReconciliationResult
from ledger_kernel.domain.validation import (
    ClosingRule,
    SubjectKind,
    ValidationIssue,
    ValidationReport,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.document_selector import (
    SqlCommissionProvider,
    SqlSourceDocumentProvider,
)
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.period_service import PeriodService
from ledger_services.document_posting_registry import DocumentPostingRegistry
from ledger_services.treasury_reconciliation import TreasuryReconciliationChecker

logger = get_logger("services.closing_validator")

_COMMISSION_DESCRIPTIONS = {
    CommissionProblem.UNBILLED: "Commission has not been billed",
    CommissionProblem.BILLED_UNPAID: "Commission is billed but unpaid and has no approved payable",
    CommissionProblem.MISSING_ENTRY: "Commission invoice has no confirmed ledger entry",
}


class ClosingValidator:
    """
    Produces the ValidationReport for a period close.

    Contract:
        ``validate_close(period_id)`` reads; it never writes.  A report
        passes iff it has zero issues.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        document_provider: SourceDocumentProvider | None = None,
        commission_provider: CommissionProvider | None = None,
        treasury_checker: TreasuryReconciliationChecker | None = None,
        ledger_selector: LedgerSelector | None = None,
        period_service: PeriodService | None = None,
    ):
        self._clock = clock or SystemClock()
        self._registry = DocumentPostingRegistry(
            document_provider or SqlSourceDocumentProvider(session)
        )
        self._commissions = commission_provider or SqlCommissionProvider(session)
        self._ledger = ledger_selector or LedgerSelector(session)
        self._treasury = treasury_checker or TreasuryReconciliationChecker(
            session, ledger_selector=self._ledger,
        )
        self._periods = period_service or PeriodService(session, self._clock)

    # -----------------------------------------------------------------
    # Individual checks
    # -----------------------------------------------------------------

    def check_posting_completeness(
        self, period: AccountingPeriodInfo,
    ) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        grouped = self._registry.unposted_or_failed(period.company_id, period.date_range)
        for kind, documents in grouped.items():
            for doc in documents:
                description = f"{kind.value} {doc.number} is {doc.status.value}"
                if doc.error:
                    description = f"{description}: {doc.error}"
                issues.append(
                    ValidationIssue(
                        rule=ClosingRule.POSTING_COMPLETENESS,
                        subject_kind=SubjectKind(kind.value),
                        subject_id=doc.document_id,
                        description=description,
                        subject_ref=doc.number,
                        amount=doc.total,
                    )
                )
        return issues

    def check_entry_confirmation(
        self, period: AccountingPeriodInfo,
    ) -> list[ValidationIssue]:
        return [
            ValidationIssue(
                rule=ClosingRule.ENTRY_CONFIRMATION,
                subject_kind=SubjectKind.LEDGER_ENTRY,
                subject_id=entry.id,
                description=f"Ledger entry {entry.number} dated {entry.entry_date} is still draft",
                subject_ref=entry.number,
                amount=entry.total_debits,
            )
            for entry in self._ledger.draft_entries(period.company_id, period.date_range)
        ]

    @staticmethod
    def check_double_entry_balance(
        period: AccountingPeriodInfo, totals: PeriodTotals,
    ) -> list[ValidationIssue]:
        if totals.is_balanced:
            return []
        return [
            ValidationIssue(
                rule=ClosingRule.DOUBLE_ENTRY_BALANCE,
                subject_kind=SubjectKind.PERIOD,
                subject_id=period.id,
                description=(
                    f"Confirmed debits {totals.total_debits} do not equal "
                    f"credits {totals.total_credits} in {period.name}"
                ),
                subject_ref=period.name,
                amount=totals.difference,
            )
        ]

    def check_commission_settlement(
        self, period: AccountingPeriodInfo,
    ) -> list[ValidationIssue]:
        status = self._commissions.settlement_status(period.company_id, period.date_range)
        return [
            ValidationIssue(
                rule=ClosingRule.COMMISSION_SETTLEMENT,
                subject_kind=SubjectKind.COMMISSION,
                subject_id=issue.commission_id,
                description=_COMMISSION_DESCRIPTIONS[issue.problem],
                subject_ref=issue.problem.value,
                amount=issue.amount,
            )
            for issue in status.issues
        ]

    @staticmethod
    def check_treasury(reconciliation: ReconciliationResult) -> list[ValidationIssue]:
        issues = [
            ValidationIssue(
                rule=ClosingRule.TREASURY_RECONCILIATION,
                subject_kind=SubjectKind.BANK_ACCOUNT,
                subject_id=check.bank_account_id,
                description=(
                    f"Bank account {check.bank_account_name}: recorded balance "
                    f"{check.recorded_balance} differs from ledger balance "
                    f"{check.computed_balance} by {check.difference}"
                ),
                subject_ref=check.bank_account_name,
                amount=check.difference,
            )
            for check in reconciliation.mismatched_balances
        ]
        issues.extend(
            ValidationIssue(
                rule=ClosingRule.TREASURY_RECONCILIATION,
                subject_kind=SubjectKind.TREASURY_MOVEMENT,
                subject_id=movement.movement_id,
                description=f"Treasury movement on {movement.movement_date}: {movement.reason}",
                amount=movement.amount,
            )
            for movement in reconciliation.unlinked_movements
        )
        return issues

    # -----------------------------------------------------------------
    # Entry point
    # -----------------------------------------------------------------

    def validate_close(self, period_id: UUID) -> ValidationReport:
        """Run every closing check for the period and return the full report."""
        t0 = time.monotonic()
        period = self._periods.get_period(period_id)

        issues: list[ValidationIssue] = []
        issues.extend(self.check_posting_completeness(period))
        issues.extend(self.check_entry_confirmation(period))

        totals = self._ledger.period_totals(period.company_id, period.date_range)
        issues.extend(self.check_double_entry_balance(period, totals))

        issues.extend(self.check_commission_settlement(period))

        reconciliation = self._treasury.reconcile(period.company_id, period.date_range)
        issues.extend(self.check_treasury(reconciliation))

        report = ValidationReport(
            period_id=period.id,
            company_id=period.company_id,
            date_range=period.date_range,
            issues=tuple(issues),
            totals=totals,
            reconciliation=reconciliation,
            validated_at=self._clock.now(),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        if report.passed:
            logger.info(
                "close_validation_passed",
                extra={
                    "period_name": period.name,
                    "entry_count": totals.entry_count,
                    "duration_ms": duration_ms,
                },
            )
        else:
            logger.warning(
                "close_validation_failed",
                extra={
                    "period_name": period.name,
                    "issue_count": len(report.issues),
                    "failed_rules": [r.value for r in report.failed_rules()],
                    "duration_ms": duration_ms,
                },
            )
        return report

