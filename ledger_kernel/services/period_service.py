"""
PeriodService -- fiscal year and accounting period lifecycle.

Responsibility:
    Creates fiscal years with their monthly periods, answers "which period
    covers this date and is it open", and performs every lifecycle
    transition (close, reopen, finalize) for periods and fiscal years.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by LedgerService to validate entry dates, and by
    PeriodCloseService to drive the close/reopen/finalize lifecycle.

Invariants enforced:
    - Legal transitions only (domain/period_lifecycle.py).
    - Compare-and-set: every state write is a single
      ``UPDATE ... WHERE id=:id AND version=:v AND state=:s`` that also bumps
      ``version``.  Zero affected rows means another actor moved the row
      first and raises ConcurrentStateChangeError.
    - allows_entries is written in the same statement as state.
    - Reopen requires a non-blank reason; a closed fiscal year blocks
      reopening its periods.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - PeriodNotFoundError / FiscalYearNotFoundError: unknown id or date.
    - PeriodClosedError: date falls in a non-open period.
    - PeriodOverlapError: new fiscal year overlaps an existing one.
    - FiscalYearNotReadyError: closing a year with open periods.
    - ReasonRequiredError, InvalidStateTransitionError and subclasses.
    - ConcurrentStateChangeError: compare-and-set lost the race.

Audit relevance:
    Transitions are logged at INFO with prior/new state and version.  The
    matching ClosureRecord is written by ClosureRecorder in the same
    transaction.
"""

import calendar
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.orm import Session

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountingPeriodInfo,
    DateRange,
    FiscalYearInfo,
    PeriodTotals,
)
from ledger_kernel.domain.period_lifecycle import (
    LifecycleAction,
    allows_entries,
    next_state,
    source_state,
)
from ledger_kernel.exceptions import (
    ConcurrentStateChangeError,
    FiscalYearNotFoundError,
    FiscalYearNotReadyError,
    InvalidStateTransitionError,
    PeriodClosedError,
    PeriodNotFoundError,
    PeriodOverlapError,
    ReasonRequiredError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import AccountingPeriod, FiscalYear, PeriodState
from ledger_kernel.selectors.period_selector import fiscal_year_to_info, period_to_info
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


def monthly_ranges(start_date: date, end_date: date) -> list[DateRange]:
    """
    Split [start_date, end_date] into calendar-month ranges.

    The first range starts on ``start_date`` and the last one is clipped to
    ``end_date``, so the ranges partition the input exactly.
    """
    ranges: list[DateRange] = []
    cursor = start_date
    while cursor <= end_date:
        last_day = calendar.monthrange(cursor.year, cursor.month)[1]
        month_end = min(date(cursor.year, cursor.month, last_day), end_date)
        ranges.append(DateRange(cursor, month_end))
        cursor = month_end + timedelta(days=1)
    return ranges


class PeriodService(BaseService):
    """
    Service for the fiscal year / accounting period lifecycle.

    Contract:
        Lifecycle methods load the target, resolve the next state through the
        transition table, then issue a compare-and-set update.  The caller may
        pass ``expected_version`` captured before a long-running step (e.g.
        closing validation) so that a transition committed by someone else in
        the meantime is detected even if this session still holds the old
        row in its identity map.

    Guarantees:
        - Returns frozen DTOs, never ORM entities.
        - Never calls ``session.commit()``.

    Non-goals:
        - Does NOT validate documents, entries or bank balances
          (ClosingValidator in ledger_services/).
        - Does NOT write closure records (ClosureRecorder).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Fiscal year setup
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
        """
        Create a fiscal year and its contiguous monthly periods, all OPEN.

        Raises:
            ValueError: start_date after end_date.
            PeriodOverlapError: overlaps (or reuses the year number of) an
                existing fiscal year of the same company.
        """
        new_range = DateRange(start_date, end_date)

        existing = self.session.execute(
            select(FiscalYear).where(
                FiscalYear.company_id == company_id,
                or_(
                    FiscalYear.year == year,
                    and_(FiscalYear.start_date <= end_date, FiscalYear.end_date >= start_date),
                ),
            )
        ).scalars().first()
        if existing is not None:
            logger.warning(
                "fiscal_year_overlap_rejected",
                extra={"year": year, "existing_year": existing.year},
            )
            raise PeriodOverlapError(str(new_range), existing.year)

        fiscal_year = FiscalYear(
            company_id=company_id,
            year=year,
            start_date=start_date,
            end_date=end_date,
            state=PeriodState.OPEN.value,
            description=description,
            version=1,
            created_by_id=actor_id,
        )
        self.session.add(fiscal_year)

        for number, month in enumerate(monthly_ranges(start_date, end_date), start=1):
            self.session.add(AccountingPeriod(
                fiscal_year=fiscal_year,
                company_id=company_id,
                period_number=number,
                name=f"{calendar.month_name[month.start.month]} {month.start.year}",
                start_date=month.start,
                end_date=month.end,
                state=PeriodState.OPEN.value,
                allows_entries=True,
                version=1,
                created_by_id=actor_id,
            ))

        self.session.flush()

        logger.info(
            "fiscal_year_created",
            extra={
                "year": year,
                "start_date": start_date,
                "end_date": end_date,
                "period_count": len(fiscal_year.periods),
            },
        )
        return fiscal_year_to_info(fiscal_year)

    # =========================================================================
    # Queries
    # =========================================================================

    def _load_period(self, period_id: UUID) -> AccountingPeriod:
        period = self.session.get(AccountingPeriod, period_id)
        if period is None:
            raise PeriodNotFoundError(str(period_id))
        return period

    def _load_period_at(
        self,
        period_id: UUID,
        action: LifecycleAction,
        expected_version: int | None,
    ) -> AccountingPeriod:
        """
        Load the period for a transition.  A version other than
        ``expected_version`` means another transition committed after the
        caller read the period.
        """
        period = self._load_period(period_id)
        if expected_version is not None and period.version != expected_version:
            expected = source_state(action)
            logger.warning(
                "state_compare_and_set_lost",
                extra={
                    "target_type": AccountingPeriod.__name__,
                    "target_id": str(period_id),
                    "expected_state": expected.value,
                    "expected_version": expected_version,
                    "current_version": period.version,
                },
            )
            raise ConcurrentStateChangeError(
                str(period_id), expected.value, expected_version,
            )
        return period

    def _load_fiscal_year(self, fiscal_year_id: UUID) -> FiscalYear:
        fiscal_year = self.session.get(FiscalYear, fiscal_year_id)
        if fiscal_year is None:
            raise FiscalYearNotFoundError(str(fiscal_year_id))
        return fiscal_year

    def _find_period(self, company_id: UUID, check_date: date) -> AccountingPeriod | None:
        return self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.company_id == company_id,
                AccountingPeriod.start_date <= check_date,
                AccountingPeriod.end_date >= check_date,
            )
        ).scalar_one_or_none()

    def get_period(self, period_id: UUID) -> AccountingPeriodInfo:
        return period_to_info(self._load_period(period_id))

    def get_fiscal_year(self, fiscal_year_id: UUID) -> FiscalYearInfo:
        return fiscal_year_to_info(self._load_fiscal_year(fiscal_year_id))

    def get_period_for_date(self, company_id: UUID, check_date: date) -> AccountingPeriodInfo:
        """Period covering ``check_date``; PeriodNotFoundError if none does."""
        period = self._find_period(company_id, check_date)
        if period is None:
            raise PeriodNotFoundError(check_date.isoformat())
        return period_to_info(period)

    def get_current_period(self, company_id: UUID) -> AccountingPeriodInfo:
        """Period covering today's date according to the injected clock."""
        return self.get_period_for_date(company_id, self._clock.today())

    def days_remaining_in_current_period(self, company_id: UUID) -> int:
        """Calendar days left in the current period, today excluded."""
        current = self.get_current_period(company_id)
        return (current.end_date - self._clock.today()).days

    def is_date_in_open_period(self, company_id: UUID, check_date: date) -> bool:
        """True only if a period covers the date and that period is OPEN."""
        period = self._find_period(company_id, check_date)
        return period is not None and PeriodState(period.state) == PeriodState.OPEN

    def require_open_period(self, company_id: UUID, check_date: date) -> AccountingPeriodInfo:
        """
        Return the OPEN period covering ``check_date``.

        Raises:
            PeriodNotFoundError: no period covers the date.
            PeriodClosedError: the covering period is CLOSED or CLOSED_FINAL.
        """
        period = self._find_period(company_id, check_date)
        if period is None:
            logger.warning(
                "period_not_found_for_date",
                extra={"date": check_date},
            )
            raise PeriodNotFoundError(check_date.isoformat())
        if PeriodState(period.state) != PeriodState.OPEN:
            logger.warning(
                "closed_period_write_rejected",
                extra={
                    "date": check_date,
                    "period_name": period.name,
                    "state": period.state,
                },
            )
            raise PeriodClosedError(period.name, period.state, check_date.isoformat())
        return period_to_info(period)

    def list_periods(
        self,
        company_id: UUID,
        fiscal_year_id: UUID | None = None,
        state: PeriodState | None = None,
    ) -> list[AccountingPeriodInfo]:
        stmt = (
            select(AccountingPeriod)
            .where(AccountingPeriod.company_id == company_id)
            .order_by(AccountingPeriod.start_date)
        )
        if fiscal_year_id is not None:
            stmt = stmt.where(AccountingPeriod.fiscal_year_id == fiscal_year_id)
        if state is not None:
            stmt = stmt.where(AccountingPeriod.state == state.value)
        return [period_to_info(p) for p in self.session.scalars(stmt)]

    # =========================================================================
    # Compare-and-set
    # =========================================================================

    def _compare_and_set(
        self,
        model,
        target,
        expected_state: PeriodState,
        expected_version: int,
        actor_id: UUID,
        **values,
    ) -> None:
        result = self.session.execute(
            update(model)
            .where(
                model.id == target.id,
                model.version == expected_version,
                model.state == expected_state.value,
            )
            .values(version=model.version + 1, updated_by_id=actor_id, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "state_compare_and_set_lost",
                extra={
                    "target_type": model.__name__,
                    "target_id": str(target.id),
                    "expected_state": expected_state.value,
                    "expected_version": expected_version,
                },
            )
            raise ConcurrentStateChangeError(
                str(target.id), expected_state.value, expected_version,
            )
        # Core UPDATE bypassed the identity map; reload on next access.
        self.session.expire(target)

    def _transition_period(
        self,
        period: AccountingPeriod,
        action: LifecycleAction,
        actor_id: UUID,
        expected_version: int | None,
        **values,
    ) -> AccountingPeriodInfo:
        prior = PeriodState(period.state)
        new = next_state(prior, action, str(period.id))
        version = period.version if expected_version is None else expected_version

        self._compare_and_set(
            AccountingPeriod,
            period,
            prior,
            version,
            actor_id,
            state=new.value,
            allows_entries=allows_entries(new),
            **values,
        )

        logger.info(
            "period_state_changed",
            extra={
                "period_name": period.name,
                "prior_state": prior.value,
                "new_state": new.value,
                "version": version + 1,
            },
        )
        return period_to_info(period)

    # =========================================================================
    # Period transitions
    # =========================================================================

    def close(
        self,
        period_id: UUID,
        actor_id: UUID,
        totals: PeriodTotals,
        expected_version: int | None = None,
    ) -> AccountingPeriodInfo:
        """
        OPEN -> CLOSED, persisting the totals and close metadata in the same
        statement as the state flip.

        Raises:
            PeriodAlreadyClosedError: period is not OPEN.
            ConcurrentStateChangeError: version/state moved since it was read.
        """
        period = self._load_period_at(period_id, LifecycleAction.CLOSE, expected_version)
        return self._transition_period(
            period,
            LifecycleAction.CLOSE,
            actor_id,
            expected_version,
            total_debits=round_money(totals.total_debits),
            total_credits=round_money(totals.total_credits),
            entry_count=totals.entry_count,
            closed_at=self._clock.now(),
            closed_by_id=actor_id,
        )

    def reopen(
        self,
        period_id: UUID,
        actor_id: UUID,
        reason: str,
        expected_version: int | None = None,
    ) -> AccountingPeriodInfo:
        """
        CLOSED -> OPEN with reopen metadata.  Close totals are kept as the
        record of the last close.

        Raises:
            ReasonRequiredError: blank reason.
            CannotReopenFinalizedError: period is CLOSED_FINAL.
            InvalidStateTransitionError: period is OPEN, or its fiscal year
                is not OPEN.
        """
        if not reason or not reason.strip():
            raise ReasonRequiredError(str(period_id))

        period = self._load_period_at(period_id, LifecycleAction.REOPEN, expected_version)
        year_state = PeriodState(period.fiscal_year.state)
        if (
            PeriodState(period.state) == PeriodState.CLOSED
            and year_state != PeriodState.OPEN
        ):
            raise InvalidStateTransitionError(
                str(period_id), f"fiscal year {year_state.value}", "reopen",
            )

        return self._transition_period(
            period,
            LifecycleAction.REOPEN,
            actor_id,
            expected_version,
            reopened_at=self._clock.now(),
            reopened_by_id=actor_id,
            reopen_reason=reason.strip(),
        )

    def finalize(
        self,
        period_id: UUID,
        actor_id: UUID,
        expected_version: int | None = None,
    ) -> AccountingPeriodInfo:
        """CLOSED -> CLOSED_FINAL.  Terminal; the period can never reopen."""
        period = self._load_period_at(period_id, LifecycleAction.FINALIZE, expected_version)
        return self._transition_period(
            period, LifecycleAction.FINALIZE, actor_id, expected_version,
        )

    # =========================================================================
    # Fiscal year transitions
    # =========================================================================

    def _transition_year(
        self,
        fiscal_year: FiscalYear,
        action: LifecycleAction,
        actor_id: UUID,
        **values,
    ) -> FiscalYearInfo:
        prior = PeriodState(fiscal_year.state)
        new = next_state(prior, action, f"fiscal year {fiscal_year.year}")
        version = fiscal_year.version

        self._compare_and_set(
            FiscalYear, fiscal_year, prior, version, actor_id,
            state=new.value, **values,
        )

        logger.info(
            "fiscal_year_transition",
            extra={
                "year": fiscal_year.year,
                "action": action.value,
                "prior_state": prior.value,
                "new_state": new.value,
            },
        )
        return fiscal_year_to_info(fiscal_year)

    def close_fiscal_year(self, fiscal_year_id: UUID, actor_id: UUID) -> FiscalYearInfo:
        """
        OPEN -> CLOSED for a fiscal year whose periods are all closed.

        Raises:
            FiscalYearNotReadyError: any period is still OPEN.
        """
        fiscal_year = self._load_fiscal_year(fiscal_year_id)
        open_periods = [
            p.name for p in fiscal_year.periods
            if PeriodState(p.state) == PeriodState.OPEN
        ]
        if open_periods:
            logger.warning(
                "fiscal_year_not_ready",
                extra={"year": fiscal_year.year, "open_periods": open_periods},
            )
            raise FiscalYearNotReadyError(fiscal_year.year, open_periods)

        return self._transition_year(
            fiscal_year, LifecycleAction.CLOSE, actor_id,
            closed_at=self._clock.now(),
            closed_by_id=actor_id,
        )

    def reopen_fiscal_year(
        self, fiscal_year_id: UUID, actor_id: UUID, reason: str,
    ) -> FiscalYearInfo:
        """CLOSED -> OPEN for a fiscal year.  Its periods keep their states."""
        if not reason or not reason.strip():
            raise ReasonRequiredError(str(fiscal_year_id))
        fiscal_year = self._load_fiscal_year(fiscal_year_id)
        return self._transition_year(
            fiscal_year, LifecycleAction.REOPEN, actor_id,
            reopened_at=self._clock.now(),
            reopened_by_id=actor_id,
            reopen_reason=reason.strip(),
        )

    def finalize_fiscal_year(self, fiscal_year_id: UUID, actor_id: UUID) -> FiscalYearInfo:
        """
        CLOSED -> CLOSED_FINAL for a fiscal year.

        Periods are not touched here; PeriodCloseService finalizes them
        first so each one gets its own closure record.
        """
        fiscal_year = self._load_fiscal_year(fiscal_year_id)
        not_final = [
            p.name for p in fiscal_year.periods
            if PeriodState(p.state) == PeriodState.OPEN
        ]
        if not_final:
            raise FiscalYearNotReadyError(fiscal_year.year, not_final)
        return self._transition_year(fiscal_year, LifecycleAction.FINALIZE, actor_id)
