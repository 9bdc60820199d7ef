"""
ledger_services.period_close_service -- close, reopen and finalize periods.

Responsibility:
    The exposed surface of the period lifecycle.  Validates a close with
    ClosingValidator, then runs the write phase as one transaction:

        compare-and-set state flip + totals        (PeriodService)
        hidden_by_period_id tag on documents        (DocumentVisibilityGateway)
        closure record + balance snapshots          (ClosureRecorder)

    Reopen, finalize and the fiscal-year transitions follow the same shape
    without the validation step.

Architecture position:
    Services -- stateful orchestration over kernel services.  Owns the
    transaction: commits on success, rolls back on any failure
    (``auto_commit=True``).  With ``auto_commit=False`` the caller owns
    commit/rollback.

Invariants enforced:
    - A failed validation changes nothing; the period stays OPEN and the
      caller receives the full report.
    - The compare-and-set uses the version read BEFORE validation, so a
      close or reopen committed by someone else while this one validated
      surfaces as ConcurrentStateChangeError.
    - All-or-nothing write phase: storage errors roll back and surface as
      PersistenceError chained to the SQLAlchemy error.
    - Reopen requires a reason; reopening an OPEN period only re-syncs the
      document visibility tags and writes no closure record.

Failure modes:
    - PeriodNotFoundError, FiscalYearNotFoundError.
    - PeriodAlreadyClosedError, CannotReopenFinalizedError,
      InvalidStateTransitionError, ReasonRequiredError,
      FiscalYearNotReadyError.
    - ConcurrentStateChangeError (retryable).
    - PersistenceError.

Audit relevance:
    Every transition is bound to a correlation_id in LogContext and logged
    with its duration; the ClosureRecord written in the same transaction is
    the durable trail.
"""

from __future__ import annotations

import time
from datetime import date
from collections.abc import Callable
from typing import TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_config import LedgerSettings, get_active_settings
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.collaborators import (
    BankAccountProvider,
    CommissionProvider,
    DocumentVisibilityGateway,
    SourceDocumentProvider,
    TreasuryMovementProvider,
)
from ledger_kernel.domain.dtos import (
    AccountingPeriodInfo,
    ClosedPeriodSummary,
    ClosureRecordInfo,
    FiscalYearInfo,
)
from ledger_kernel.domain.period_lifecycle import LifecycleAction, next_state
from ledger_kernel.domain.validation import ClosePeriodResult, ValidationReport
from ledger_kernel.exceptions import (
    LedgerKernelError,
    PersistenceError,
    ReasonRequiredError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.closing import ClosureAction
from ledger_kernel.models.fiscal_period import PeriodState
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.selectors.period_selector import PeriodSelector
from ledger_kernel.services.closure_recorder import ClosureRecorder
from ledger_kernel.services.document_visibility_service import DocumentVisibilityService
from ledger_kernel.services.period_service import PeriodService
from ledger_services.closing_validator import ClosingValidator
from ledger_services.treasury_reconciliation import TreasuryReconciliationChecker

logger = get_logger("services.period_close")

T = TypeVar("T")


class PeriodCloseService:
    """
    Period and fiscal-year lifecycle operations.

    Contract:
        ``close_period`` returns a ClosePeriodResult (summary or report).
        Every other operation returns the post-transition DTO or raises a
        typed LedgerKernelError.

    Non-goals:
        - Does NOT post or fix documents; callers correct what the report
          lists and retry.
        - Does NOT retry on ConcurrentStateChangeError.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        *,
        settings: LedgerSettings | None = None,
        document_provider: SourceDocumentProvider | None = None,
        commission_provider: CommissionProvider | None = None,
        bank_account_provider: BankAccountProvider | None = None,
        movement_provider: TreasuryMovementProvider | None = None,
        visibility_gateway: DocumentVisibilityGateway | None = None,
        validator: ClosingValidator | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._auto_commit = auto_commit

        self._periods = PeriodService(session, self._clock)
        self._ledger = LedgerSelector(session)
        self._selector = PeriodSelector(session)
        self._recorder = ClosureRecorder(session, self._clock)
        self._visibility = visibility_gateway or DocumentVisibilityService(session)
        self._validator = validator or ClosingValidator(
            session,
            self._clock,
            document_provider=document_provider,
            commission_provider=commission_provider,
            treasury_checker=TreasuryReconciliationChecker(
                session,
                tolerance=self._settings.reconciliation_tolerance,
                bank_account_provider=bank_account_provider,
                movement_provider=movement_provider,
                ledger_selector=self._ledger,
            ),
            ledger_selector=self._ledger,
            period_service=self._periods,
        )

    # =========================================================================
    # Transaction boundary
    # =========================================================================

    def _write_phase(self, operation: str, target_id: UUID, work: Callable[[], T]) -> T:
        """Run ``work`` and commit; roll back and re-raise on any failure."""
        try:
            result = work()
            if self._auto_commit:
                self._session.commit()
            return result
        except LedgerKernelError:
            if self._auto_commit:
                self._session.rollback()
            raise
        except SQLAlchemyError as exc:
            if self._auto_commit:
                self._session.rollback()
            logger.error(
                "write_phase_failed",
                extra={"operation": operation, "target_id": str(target_id)},
                exc_info=True,
            )
            raise PersistenceError(operation, str(target_id), str(exc)) from exc
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            logger.error(
                "write_phase_failed",
                extra={"operation": operation, "target_id": str(target_id)},
                exc_info=True,
            )
            raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get_period_state(self, period_id: UUID) -> PeriodState:
        return self._periods.get_period(period_id).state

    def get_closure_history(
        self, company_id: UUID, period_id: UUID | None = None,
    ) -> list[ClosureRecordInfo]:
        """Closure records, newest first."""
        return self._selector.closure_history(company_id, period_id)

    def preview_close(self, period_id: UUID) -> ValidationReport:
        """The report ``close_period`` would act on, without changing anything."""
        with LogContext.bind(period_id=period_id):
            return self._validator.validate_close(period_id)

    # =========================================================================
    # Period close
    # =========================================================================

    def close_period(
        self,
        period_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> ClosePeriodResult:
        """
        Validate and close an OPEN period.

        Postconditions:
            - Success: period CLOSED with totals, one BalanceSnapshot per
              active bank account, documents tagged hidden, one
              ClosureRecord(action=close); committed.
            - Validation failure: nothing written; the result carries the
              report.

        Raises:
            PeriodAlreadyClosedError: the period is not OPEN.
            ConcurrentStateChangeError: another transition won the race.
            PersistenceError: the write phase failed and was rolled back.
        """
        with LogContext.bind(
            correlation_id=uuid4(), actor_id=actor_id, period_id=period_id,
        ):
            t0 = time.monotonic()
            period = self._periods.get_period(period_id)
            next_state(period.state, LifecycleAction.CLOSE, str(period_id))
            expected_version = period.version

            with LogContext.bind(company_id=period.company_id):
                logger.info(
                    "period_close_started",
                    extra={"period_name": period.name, "version": expected_version},
                )

                report = self._validator.validate_close(period_id)
                if not report.passed:
                    logger.warning(
                        "period_close_rejected",
                        extra={
                            "period_name": period.name,
                            "issue_count": len(report.issues),
                            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                        },
                    )
                    return ClosePeriodResult.failure(report)

                def work() -> ClosedPeriodSummary:
                    closed = self._periods.close(
                        period_id, actor_id, report.totals, expected_version,
                    )
                    change = self._visibility.hide_in_range(
                        period.company_id, period.date_range, period_id,
                    )
                    record = self._recorder.record_period_action(
                        closed,
                        ClosureAction.CLOSE,
                        actor_id,
                        prior_state=PeriodState.OPEN,
                        totals=report.totals,
                        balances=report.reconciliation.balances,
                        reason=reason,
                        notes=notes,
                    )
                    return ClosedPeriodSummary(
                        period=closed,
                        closure_record=record,
                        snapshots=record.snapshots,
                        hidden_document_count=change.documents,
                        hidden_commission_count=change.commissions,
                    )

                summary = self._write_phase("close", period_id, work)

                logger.info(
                    "period_closed",
                    extra={
                        "period_name": period.name,
                        "entry_count": report.totals.entry_count,
                        "snapshot_count": len(summary.snapshots),
                        "hidden_documents": summary.hidden_document_count,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                return ClosePeriodResult.success(summary)

    # =========================================================================
    # Period reopen / finalize
    # =========================================================================

    def reopen_period(
        self,
        period_id: UUID,
        actor_id: UUID,
        reason: str,
        notes: str | None = None,
    ) -> AccountingPeriodInfo:
        """
        Reopen a CLOSED period.

        An already OPEN period is re-synced instead: stale hidden tags on
        its documents are cleared and no closure record is written.

        Raises:
            ReasonRequiredError: blank reason (checked first).
            CannotReopenFinalizedError: period is CLOSED_FINAL.
            InvalidStateTransitionError: the fiscal year is closed.
        """
        if not reason or not reason.strip():
            raise ReasonRequiredError(str(period_id))

        with LogContext.bind(
            correlation_id=uuid4(), actor_id=actor_id, period_id=period_id,
        ):
            t0 = time.monotonic()
            period = self._periods.get_period(period_id)

            if period.state == PeriodState.OPEN:
                change = self._write_phase(
                    "reopen",
                    period_id,
                    lambda: self._visibility.reveal_for_period(
                        period.company_id, period.date_range, period_id,
                    ),
                )
                logger.info(
                    "period_reopen_resynced",
                    extra={
                        "period_name": period.name,
                        "revealed_documents": change.documents,
                        "revealed_commissions": change.commissions,
                    },
                )
                return period

            def work() -> AccountingPeriodInfo:
                reopened = self._periods.reopen(
                    period_id, actor_id, reason, expected_version=period.version,
                )
                self._visibility.reveal_for_period(
                    period.company_id, period.date_range, period_id,
                )
                self._recorder.record_period_action(
                    reopened,
                    ClosureAction.REOPEN,
                    actor_id,
                    prior_state=period.state,
                    totals=self._ledger.period_totals(period.company_id, period.date_range),
                    reason=reason.strip(),
                    notes=notes,
                )
                return reopened

            reopened = self._write_phase("reopen", period_id, work)

            logger.info(
                "period_reopened",
                extra={
                    "period_name": period.name,
                    "prior_state": period.state.value,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return reopened

    def finalize_period(
        self,
        period_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> AccountingPeriodInfo:
        """CLOSED -> CLOSED_FINAL.  The period can never be reopened afterwards."""
        with LogContext.bind(
            correlation_id=uuid4(), actor_id=actor_id, period_id=period_id,
        ):
            period = self._periods.get_period(period_id)

            def work() -> AccountingPeriodInfo:
                finalized = self._periods.finalize(
                    period_id, actor_id, expected_version=period.version,
                )
                self._recorder.record_period_action(
                    finalized,
                    ClosureAction.FINALIZE,
                    actor_id,
                    prior_state=period.state,
                    totals=period.totals,
                    notes=notes,
                )
                return finalized

            finalized = self._write_phase("finalize", period_id, work)
            logger.info("period_finalized", extra={"period_name": period.name})
            return finalized

    # =========================================================================
    # Fiscal year
    # =========================================================================

    def create_fiscal_year(
        self,
        company_id: UUID,
        year: int,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        description: str | None = None,
    ) -> FiscalYearInfo:
        """Create the year with its monthly periods, all OPEN; committed."""
        with LogContext.bind(
            correlation_id=uuid4(), actor_id=actor_id, company_id=company_id,
        ):
            return self._write_phase(
                "create_fiscal_year",
                company_id,
                lambda: self._periods.create_fiscal_year(
                    company_id, year, start_date, end_date, actor_id, description,
                ),
            )

    def close_fiscal_year(
        self,
        fiscal_year_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
        notes: str | None = None,
    ) -> FiscalYearInfo:
        """OPEN -> CLOSED once every period of the year is closed."""
        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id):
            year = self._periods.get_fiscal_year(fiscal_year_id)

            def work() -> FiscalYearInfo:
                closed = self._periods.close_fiscal_year(fiscal_year_id, actor_id)
                self._recorder.record_fiscal_year_action(
                    closed,
                    ClosureAction.CLOSE,
                    actor_id,
                    prior_state=year.state,
                    totals=self._ledger.period_totals(year.company_id, year.date_range),
                    reason=reason,
                    notes=notes,
                )
                return closed

            closed = self._write_phase("close_fiscal_year", fiscal_year_id, work)
            logger.info("fiscal_year_closed", extra={"year": year.year})
            return closed

    def reopen_fiscal_year(
        self,
        fiscal_year_id: UUID,
        actor_id: UUID,
        reason: str,
        notes: str | None = None,
    ) -> FiscalYearInfo:
        """CLOSED -> OPEN for the year; its periods stay as they are."""
        if not reason or not reason.strip():
            raise ReasonRequiredError(str(fiscal_year_id))

        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id):
            year = self._periods.get_fiscal_year(fiscal_year_id)

            def work() -> FiscalYearInfo:
                reopened = self._periods.reopen_fiscal_year(fiscal_year_id, actor_id, reason)
                self._recorder.record_fiscal_year_action(
                    reopened,
                    ClosureAction.REOPEN,
                    actor_id,
                    prior_state=year.state,
                    totals=self._ledger.period_totals(year.company_id, year.date_range),
                    reason=reason.strip(),
                    notes=notes,
                )
                return reopened

            reopened = self._write_phase("reopen_fiscal_year", fiscal_year_id, work)
            logger.info("fiscal_year_reopened", extra={"year": year.year})
            return reopened

    def finalize_fiscal_year(
        self,
        fiscal_year_id: UUID,
        actor_id: UUID,
        notes: str | None = None,
    ) -> FiscalYearInfo:
        """
        CLOSED -> CLOSED_FINAL for the year, finalizing each CLOSED period
        first.  Every finalized period gets its own closure record.
        """
        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id):
            year = self._periods.get_fiscal_year(fiscal_year_id)
            next_state(year.state, LifecycleAction.FINALIZE, f"fiscal year {year.year}")

            def work() -> FiscalYearInfo:
                for period in year.periods:
                    if period.state != PeriodState.CLOSED:
                        continue
                    finalized = self._periods.finalize(
                        period.id, actor_id, expected_version=period.version,
                    )
                    self._recorder.record_period_action(
                        finalized,
                        ClosureAction.FINALIZE,
                        actor_id,
                        prior_state=PeriodState.CLOSED,
                        totals=period.totals,
                        notes=notes,
                    )

                final = self._periods.finalize_fiscal_year(fiscal_year_id, actor_id)
                self._recorder.record_fiscal_year_action(
                    final,
                    ClosureAction.FINALIZE,
                    actor_id,
                    prior_state=year.state,
                    totals=self._ledger.period_totals(year.company_id, year.date_range),
                    notes=notes,
                )
                return final

            final = self._write_phase("finalize_fiscal_year", fiscal_year_id, work)
            logger.info("fiscal_year_finalized", extra={"year": year.year})
            return final
