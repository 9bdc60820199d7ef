"""
Module: ledger_kernel.selectors.period_selector
Responsibility: Read-only queries over fiscal years, accounting periods and the
    closure audit trail, plus the ORM -> DTO converters shared with
    PeriodService and ClosureRecorder.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Closure history is returned newest first (record_seq DESC).
    - Periods are returned in period_number order.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.types import round_money
from ledger_kernel.domain.dtos import (
    AccountingPeriodInfo,
    BalanceSnapshotInfo,
    ClosureRecordInfo,
    FiscalYearInfo,
    PeriodTotals,
)
from ledger_kernel.models.closing import (
    BalanceSnapshot,
    ClosureAction,
    ClosureRecord,
    ClosureScope,
)
from ledger_kernel.models.fiscal_period import AccountingPeriod, FiscalYear, PeriodState
from ledger_kernel.selectors.base import BaseSelector


def period_to_info(period: AccountingPeriod) -> AccountingPeriodInfo:
    return AccountingPeriodInfo(
        id=period.id,
        fiscal_year_id=period.fiscal_year_id,
        company_id=period.company_id,
        period_number=period.period_number,
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        state=PeriodState(period.state),
        allows_entries=period.allows_entries,
        version=period.version,
        totals=PeriodTotals(
            total_debits=round_money(period.total_debits),
            total_credits=round_money(period.total_credits),
            entry_count=period.entry_count,
        ),
        closed_at=period.closed_at,
        closed_by_id=period.closed_by_id,
        reopened_at=period.reopened_at,
        reopened_by_id=period.reopened_by_id,
        reopen_reason=period.reopen_reason,
    )


def fiscal_year_to_info(year: FiscalYear) -> FiscalYearInfo:
    return FiscalYearInfo(
        id=year.id,
        company_id=year.company_id,
        year=year.year,
        start_date=year.start_date,
        end_date=year.end_date,
        state=PeriodState(year.state),
        version=year.version,
        periods=tuple(period_to_info(p) for p in year.periods),
        description=year.description,
        closed_at=year.closed_at,
        closed_by_id=year.closed_by_id,
        reopened_at=year.reopened_at,
        reopened_by_id=year.reopened_by_id,
        reopen_reason=year.reopen_reason,
    )


def snapshot_to_info(snapshot: BalanceSnapshot) -> BalanceSnapshotInfo:
    return BalanceSnapshotInfo(
        id=snapshot.id,
        period_id=snapshot.period_id,
        closure_record_id=snapshot.closure_record_id,
        bank_account_id=snapshot.bank_account_id,
        computed_balance=round_money(snapshot.computed_balance),
        recorded_balance=round_money(snapshot.recorded_balance),
        difference=round_money(snapshot.difference),
        captured_at=snapshot.captured_at,
    )


def closure_record_to_info(record: ClosureRecord) -> ClosureRecordInfo:
    return ClosureRecordInfo(
        id=record.id,
        company_id=record.company_id,
        record_seq=record.record_seq,
        scope=ClosureScope(record.scope),
        fiscal_year_id=record.fiscal_year_id,
        action=ClosureAction(record.action),
        actor_id=record.actor_id,
        recorded_at=record.recorded_at,
        prior_state=PeriodState(record.prior_state),
        new_state=PeriodState(record.new_state),
        totals=PeriodTotals(
            total_debits=round_money(record.total_debits),
            total_credits=round_money(record.total_credits),
            entry_count=record.entry_count,
        ),
        period_id=record.period_id,
        reason=record.reason,
        notes=record.notes,
        snapshots=tuple(snapshot_to_info(s) for s in record.snapshots),
    )


class PeriodSelector(BaseSelector):
    """Read-only access to periods, fiscal years and closure history."""

    def get_period(self, period_id: UUID) -> AccountingPeriodInfo | None:
        period = self.session.get(AccountingPeriod, period_id)
        return period_to_info(period) if period is not None else None

    def get_fiscal_year(self, fiscal_year_id: UUID) -> FiscalYearInfo | None:
        year = self.session.get(FiscalYear, fiscal_year_id)
        return fiscal_year_to_info(year) if year is not None else None

    def find_period_for_date(
        self, company_id: UUID, check_date: date,
    ) -> AccountingPeriodInfo | None:
        period = self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.company_id == company_id,
                AccountingPeriod.start_date <= check_date,
                AccountingPeriod.end_date >= check_date,
            )
        ).scalar_one_or_none()
        return period_to_info(period) if period is not None else None

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

    def list_fiscal_years(self, company_id: UUID) -> list[FiscalYearInfo]:
        stmt = (
            select(FiscalYear)
            .where(FiscalYear.company_id == company_id)
            .order_by(FiscalYear.start_date)
        )
        return [fiscal_year_to_info(y) for y in self.session.scalars(stmt)]

    def closure_history(
        self,
        company_id: UUID,
        period_id: UUID | None = None,
    ) -> list[ClosureRecordInfo]:
        """Closure records for a company (optionally one period), newest first."""
        stmt = (
            select(ClosureRecord)
            .where(ClosureRecord.company_id == company_id)
            .order_by(ClosureRecord.record_seq.desc())
        )
        if period_id is not None:
            stmt = stmt.where(ClosureRecord.period_id == period_id)
        return [closure_record_to_info(r) for r in self.session.scalars(stmt)]

    def snapshots_for_period(self, period_id: UUID) -> list[BalanceSnapshotInfo]:
        stmt = (
            select(BalanceSnapshot)
            .where(BalanceSnapshot.period_id == period_id)
            .order_by(BalanceSnapshot.captured_at)
        )
        return [snapshot_to_info(s) for s in self.session.scalars(stmt)]
