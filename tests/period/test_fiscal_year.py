"""
Fiscal year setup and period queries.

Verifies:
- Monthly periods partition the year, numbered 1..n, all OPEN
- Overlapping years for the same company are rejected
- Period lookup by date and by the injected clock
"""

from datetime import date, datetime, timezone
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import PeriodTotals
from ledger_kernel.exceptions import (
    FiscalYearNotFoundError,
    PeriodNotFoundError,
    PeriodOverlapError,
)
from ledger_kernel.models.fiscal_period import PeriodState


class TestCreateFiscalYear:

    def test_twelve_monthly_periods(self, fiscal_year):
        periods = fiscal_year.periods

        assert fiscal_year.state == PeriodState.OPEN
        assert len(periods) == 12
        assert [p.period_number for p in periods] == list(range(1, 13))
        assert periods[0].name == "January 2025"
        assert periods[1].end_date == date(2025, 2, 28)
        assert all(p.state == PeriodState.OPEN and p.allows_entries for p in periods)
        assert all(p.version == 1 for p in periods)

    def test_periods_partition_the_year(self, fiscal_year):
        periods = fiscal_year.periods

        assert periods[0].start_date == fiscal_year.start_date
        assert periods[-1].end_date == fiscal_year.end_date
        for previous, current in zip(periods, periods[1:]):
            assert (current.start_date - previous.end_date).days == 1

    def test_non_calendar_year_is_clipped(self, period_service, company_id, test_actor_id):
        year = period_service.create_fiscal_year(
            company_id, 2026, date(2025, 7, 15), date(2026, 7, 14), test_actor_id,
        )

        assert len(year.periods) == 13
        assert year.periods[0].start_date == date(2025, 7, 15)
        assert year.periods[0].end_date == date(2025, 7, 31)
        assert year.periods[-1].start_date == date(2026, 7, 1)
        assert year.periods[-1].end_date == date(2026, 7, 14)

    def test_overlapping_year_rejected(self, period_service, fiscal_year, company_id, test_actor_id):
        with pytest.raises(PeriodOverlapError) as exc_info:
            period_service.create_fiscal_year(
                company_id, 2026, date(2025, 12, 1), date(2026, 11, 30), test_actor_id,
            )
        assert exc_info.value.existing_year == 2025

    def test_same_dates_for_another_company_allowed(
        self, period_service, fiscal_year, test_actor_id,
    ):
        other = period_service.create_fiscal_year(
            uuid4(), 2025, date(2025, 1, 1), date(2025, 12, 31), test_actor_id,
        )
        assert len(other.periods) == 12

    def test_inverted_range_rejected(self, period_service, company_id, test_actor_id):
        with pytest.raises(ValueError):
            period_service.create_fiscal_year(
                company_id, 2025, date(2025, 12, 31), date(2025, 1, 1), test_actor_id,
            )

    def test_close_service_commits_new_year(
        self, close_service, period_service, session, company_id, test_actor_id,
    ):
        year = close_service.create_fiscal_year(
            company_id, 2027, date(2027, 1, 1), date(2027, 12, 31), test_actor_id,
        )
        session.rollback()

        assert len(period_service.get_fiscal_year(year.id).periods) == 12


class TestPeriodQueries:

    def test_period_for_date(self, period_service, fiscal_year, company_id):
        period = period_service.get_period_for_date(company_id, date(2025, 3, 31))
        assert period.name == "March 2025"

    def test_missing_period_is_not_found(self, period_service, fiscal_year, company_id):
        with pytest.raises(PeriodNotFoundError):
            period_service.get_period_for_date(company_id, date(2024, 12, 31))
        assert not period_service.is_date_in_open_period(company_id, date(2024, 12, 31))

    def test_current_period_follows_clock(
        self, period_service, deterministic_clock, fiscal_year, company_id,
    ):
        assert period_service.get_current_period(company_id).name == "February 2025"
        assert period_service.days_remaining_in_current_period(company_id) == 25

        deterministic_clock.set_time(datetime(2025, 12, 31, 8, 0, tzinfo=timezone.utc))
        assert period_service.get_current_period(company_id).name == "December 2025"
        assert period_service.days_remaining_in_current_period(company_id) == 0

    def test_open_period_checks(
        self, period_service, session, fiscal_year, january, company_id, test_actor_id,
    ):
        assert period_service.is_date_in_open_period(company_id, date(2025, 1, 31))

        period_service.close(january.id, test_actor_id, PeriodTotals.zero())
        session.commit()

        assert not period_service.is_date_in_open_period(company_id, date(2025, 1, 31))
        assert period_service.is_date_in_open_period(company_id, date(2025, 2, 1))

    def test_list_periods_by_state(
        self, period_service, session, fiscal_year, january, company_id, test_actor_id,
    ):
        period_service.close(january.id, test_actor_id, PeriodTotals.zero())
        session.commit()

        closed = period_service.list_periods(company_id, state=PeriodState.CLOSED)
        still_open = period_service.list_periods(company_id, fiscal_year.id, PeriodState.OPEN)

        assert [p.id for p in closed] == [january.id]
        assert len(still_open) == 11

    def test_unknown_fiscal_year(self, period_service, fiscal_year):
        with pytest.raises(FiscalYearNotFoundError):
            period_service.get_fiscal_year(uuid4())
